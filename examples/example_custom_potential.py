"""
Example: user-defined potential and initial state with named parameters.

A double well ``a4*x^4 - a2*x^2`` with a displaced Gaussian written as a
custom expression. Parameter names are extracted from the expressions and
given default ranges, then adjusted before the run.
"""
import sys
import os

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../src")))

import matplotlib.pyplot as plt

from tdse_simulation.core.parameters import ParameterStore
from tdse_simulation.simulation import SimulationConfig, run_simulation


def main():
    potential = "a4*x^4 - a2*x^2"
    wave = "exp(-(x-x0)^2/(2*sigma^2))"

    vp = ParameterStore.suggest_all(potential)
    vp.set_value("a4", 0.05)
    vp.set_value("a2", 1.0)
    wp = ParameterStore.suggest_all(wave)
    wp.set_value("x0", -3.0)
    wp.set_value("sigma", 0.6)
    print(vp)
    print(wp)

    config = SimulationConfig(
        description="double_well",
        potential_type="custom-function",
        custom_potential_function=potential,
        potential_parameters=vp,
        wavefunction_type="custom-function",
        wavefunction_real_expr=wave,
        wavefunction_imag_expr="",
        wavefunction_parameters=wp,
        grid_size=512,
        x_min=-10.0,
        x_max=10.0,
    )
    result = run_simulation(config, ticks=400)
    print(result.history[["time", "energy", "position", "total_probability"]].iloc[::50])

    fig, (ax1, ax2) = plt.subplots(2, 1, figsize=(6, 6))
    ax1.pcolormesh(result.x, result.times, result.density, shading="auto")
    ax1.set_xlabel("x")
    ax1.set_ylabel("t")
    ax2.plot(result.times, result.history["position"])
    ax2.set_xlabel("t")
    ax2.set_ylabel("<x>")
    fig.tight_layout()
    plt.show()


if __name__ == "__main__":
    main()
