import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../src")))
import logging
import numpy as np
import pytest
from tdse_simulation.core.realspace.grids import Grid1D
from tdse_simulation.core.realspace.wavefunctions import (
    PRESET_WAVEFUNCTIONS,
    WavefunctionConfig,
    initialize_wavefunction,
    validate_wavefunction_functions,
)

grid = Grid1D(512, -10.0, 10.0)


def _prob(state):
    return np.sum(state.density()) * grid.dx


@pytest.mark.parametrize("cfg", [
    WavefunctionConfig("gaussian", x0=-2, sigma=0.7, k0=3),
    WavefunctionConfig("plane-wave", amplitude=3, k0=2),
    WavefunctionConfig("bound-state", n=2, L=4),
    WavefunctionConfig("custom-function", real_function="exp(-x^2/2)", imag_function="x*exp(-x^2/2)"),
])
def test_initial_states_are_normalized(cfg):
    state = initialize_wavefunction(grid, cfg)
    assert state.time == 0.0
    assert state.size == 512
    assert np.isclose(_prob(state), 1.0, atol=1e-12)


def test_gaussian_shape():
    state = initialize_wavefunction(grid, WavefunctionConfig("gaussian", x0=1.0, sigma=1.0, k0=0.0))
    rho = state.density()
    assert np.isclose(grid.x[np.argmax(rho)], 1.0, atol=grid.dx)
    assert np.allclose(state.imag, 0.0)


def test_bound_state_support():
    state = initialize_wavefunction(grid, WavefunctionConfig("bound-state", n=1, L=4))
    outside = (grid.x <= 0) | (grid.x >= 4)
    assert np.all(state.density()[outside] == 0)
    assert np.all(state.real[~outside] > 0)


def test_custom_with_parameters():
    cfg = WavefunctionConfig("custom-function", real_function="amp*exp(-(x-x0)^2)")
    state = initialize_wavefunction(grid, cfg, {"amp": 2.0, "x0": 1.0})
    assert np.isclose(grid.x[np.argmax(state.density())], 1.0, atol=grid.dx)


def test_custom_failing_points_are_zeroed(caplog):
    cfg = WavefunctionConfig("custom-function", real_function="sqrt(x)")
    with caplog.at_level(logging.WARNING):
        state = initialize_wavefunction(grid, cfg)
    assert np.all(state.real[grid.x < 0] == 0)
    assert np.isclose(_prob(state), 1.0)
    assert "real part" in caplog.text


def test_custom_single_bad_point():
    # x = 0 is a grid point
    cfg = WavefunctionConfig("custom-function", real_function="1/x", imag_function="")
    state = initialize_wavefunction(grid, cfg)
    i0 = np.flatnonzero(grid.x == 0.0)[0]
    assert state.real[i0] == 0
    assert np.all(np.isfinite(state.real))
    assert np.isclose(_prob(state), 1.0)


def test_custom_unbound_parameter_gives_zero_state(caplog):
    cfg = WavefunctionConfig("custom-function", real_function="A*exp(-x^2)")
    with caplog.at_level(logging.WARNING):
        state = initialize_wavefunction(grid, cfg)
    assert np.all(state.density() == 0)
    assert "zero everywhere" in caplog.text


def test_custom_both_empty_is_zero():
    state = initialize_wavefunction(grid, WavefunctionConfig("custom-function"))
    assert np.all(state.density() == 0)


def test_validate_wavefunction_functions():
    assert validate_wavefunction_functions("exp(-x^2/2)", "").valid
    assert not validate_wavefunction_functions("", "").valid
    assert not validate_wavefunction_functions("1/x", "").valid
    res = validate_wavefunction_functions("exp(-x^2)", "amp*x")
    assert not res.valid and "amp" in res.error


def test_presets():
    assert set(PRESET_WAVEFUNCTIONS) == {"gaussian", "plane-wave", "bound-state", "custom-function"}
    with pytest.raises(ValueError):
        WavefunctionConfig("square")
