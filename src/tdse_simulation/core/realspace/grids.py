from __future__ import annotations

from dataclasses import dataclass, field
import numpy as np


def next_power_of_two(n: int) -> int:
    """Smallest power of two >= n (``300 -> 512``, ``512 -> 512``)."""
    n = int(n)
    if n < 1:
        raise ValueError("grid size must be positive")
    return 1 << (n - 1).bit_length()


@dataclass(frozen=True)
class SimulationParameters:
    """
    Grid extent and physical constants of one solver instance.

    Parameters
    ----------
    grid_size : int
        Requested number of samples; the solver rounds it up to a power of two.
    x_min, x_max : float
        Spatial window. The grid is periodic, ``x_max`` itself is not sampled.
    dt : float
        Time step.
    hbar, mass : float
        Reduced Planck constant and particle mass (natural units by default).
    """

    grid_size: int = 512
    x_min: float = -10.0
    x_max: float = 10.0
    dt: float = 0.005
    hbar: float = 1.0
    mass: float = 1.0

    def __post_init__(self):
        if int(self.grid_size) < 2:
            raise ValueError("grid_size must be at least 2")
        if not self.x_max > self.x_min:
            raise ValueError("x_max must be greater than x_min")
        if self.dt <= 0:
            raise ValueError("dt must be positive")
        if self.hbar <= 0:
            raise ValueError("hbar must be positive")
        if self.mass <= 0:
            raise ValueError("mass must be positive")


@dataclass(frozen=True)
class Grid1D:
    """
    Uniform periodic grid with its FFT-ordered conjugate momenta.

    ``x[i] = x_min + i*dx`` with ``dx = (x_max - x_min)/N`` and
    ``k[i] = i*dk`` for ``i < N/2``, ``(i - N)*dk`` otherwise,
    ``dk = 2*pi/(x_max - x_min)``.
    """

    n: int
    x_min: float
    x_max: float
    x: np.ndarray = field(init=False, repr=False, compare=False)
    k: np.ndarray = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        n = int(self.n)
        length = self.x_max - self.x_min
        x = self.x_min + np.arange(n, dtype=np.float64) * (length / n)
        k = 2 * np.pi * np.fft.fftfreq(n, d=length / n)
        x.flags.writeable = False
        k.flags.writeable = False
        object.__setattr__(self, "x", x)
        object.__setattr__(self, "k", k)

    @classmethod
    def from_parameters(cls, params: SimulationParameters) -> "Grid1D":
        return cls(next_power_of_two(params.grid_size), params.x_min, params.x_max)

    @property
    def size(self) -> int:
        return self.n

    @property
    def length(self) -> float:
        return self.x_max - self.x_min

    @property
    def dx(self) -> float:
        return self.length / self.n

    @property
    def dk(self) -> float:
        return 2 * np.pi / self.length
