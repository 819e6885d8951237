"""
Example: Gaussian wave packet hitting a rectangular barrier.

The packet energy (k0^2/2 + 1/(8 sigma^2) = 4.625) is below the barrier
height V0 = 5, so whatever ends up right of the barrier got there by
tunneling or through the high-momentum tail of the packet.
"""
import sys
import os

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../src")))

import numpy as np
import matplotlib.pyplot as plt

from tdse_simulation.core.realspace import (
    PotentialConfig,
    SimulationParameters,
    SpectralSolver,
    WavefunctionConfig,
    generate_potential,
    initialize_wavefunction,
)


def main():
    solver = SpectralSolver(
        SimulationParameters(grid_size=1024, x_min=-20.0, x_max=20.0, dt=0.005)
    )
    V = generate_potential(solver.x, PotentialConfig("barrier", v0=5.0, x0=0.0, width=2.0))
    solver.set_potential(V)

    state = initialize_wavefunction(
        solver.grid, WavefunctionConfig("gaussian", x0=-5.0, sigma=1.0, k0=3.0)
    )
    print(solver)
    print(f"E = {solver.get_energy(state):.4f}")

    steps = 800
    traj = solver.evolve(state, steps, sample_stride=steps // 8, return_traj=True,
                         stop_at_boundary=True)
    R, inside, T = solver.get_transmission_reflection(state, -1.0, 1.0)
    print(f"t = {state.time:.2f}: R = {R:.4f}, inside = {inside:.4f}, T = {T:.4f}")
    print(f"norm = {solver.get_total_probability(state):.12f}")

    fig, ax = plt.subplots(figsize=(7, 4))
    for j, psi in enumerate(traj):
        ax.plot(solver.x, np.abs(psi) ** 2, color=plt.cm.viridis(j / max(len(traj) - 1, 1)))
    ax2 = ax.twinx()
    ax2.fill_between(solver.x, V, color="gray", alpha=0.3)
    ax2.set_ylabel("V(x)")
    ax.set_xlabel("x")
    ax.set_ylabel("|psi|^2")
    ax.set_title("Barrier scattering")
    fig.tight_layout()
    plt.show()


if __name__ == "__main__":
    main()
