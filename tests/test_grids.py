import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../src")))
import numpy as np
import pytest
from tdse_simulation.core.realspace.grids import Grid1D, SimulationParameters, next_power_of_two


@pytest.mark.parametrize("n, expected", [(1, 1), (2, 2), (3, 4), (300, 512), (512, 512), (513, 1024)])
def test_next_power_of_two(n, expected):
    assert next_power_of_two(n) == expected


def test_grid_coordinates():
    g = Grid1D(8, -4.0, 4.0)
    assert g.dx == 1.0
    assert np.isclose(g.dk, 2 * np.pi / 8)
    assert np.allclose(g.x, np.arange(-4.0, 4.0, 1.0))
    # x_max itself is excluded (periodic grid)
    assert g.x[-1] == 3.0
    expected_k = g.dk * np.array([0, 1, 2, 3, -4, -3, -2, -1])
    assert np.allclose(g.k, expected_k)


def test_grid_arrays_are_read_only():
    g = Grid1D(16, -1.0, 1.0)
    with pytest.raises(ValueError):
        g.x[0] = 5.0
    with pytest.raises(ValueError):
        g.k[0] = 5.0


def test_grid_from_parameters_rounds_up():
    g = Grid1D.from_parameters(SimulationParameters(grid_size=300))
    assert g.size == 512
    assert np.isclose(g.dx, 20.0 / 512)
    assert np.isclose(g.length, 20.0)


@pytest.mark.parametrize("kwargs", [
    {"grid_size": 1},
    {"x_min": 1.0, "x_max": 1.0},
    {"x_min": 2.0, "x_max": -2.0},
    {"dt": 0.0},
    {"hbar": -1.0},
    {"mass": 0.0},
])
def test_simulation_parameters_rejects_invalid(kwargs):
    with pytest.raises(ValueError):
        SimulationParameters(**kwargs)
