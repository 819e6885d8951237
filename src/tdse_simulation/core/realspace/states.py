"""
Wavefunction state container.

The state keeps real and imaginary parts as two contiguous float64
arrays, which is also the layout of the persistence format. ``step``
mutates these arrays in place, so consumers that keep a frame around must
``copy()`` it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping

import numpy as np

from ._kernels import normalize_inplace, squared_norm


@dataclass(eq=False)
class WavefunctionState:
    real: np.ndarray
    imag: np.ndarray
    time: float = 0.0

    def __post_init__(self):
        self.real = np.ascontiguousarray(self.real, dtype=np.float64)
        self.imag = np.ascontiguousarray(self.imag, dtype=np.float64)
        if self.real.shape != self.imag.shape or self.real.ndim != 1:
            raise ValueError("real and imag must be 1-D arrays of equal length")
        self.time = float(self.time)

    @classmethod
    def zeros(cls, n: int) -> "WavefunctionState":
        return cls(np.zeros(n), np.zeros(n), 0.0)

    @classmethod
    def from_complex(cls, psi: np.ndarray, time: float = 0.0) -> "WavefunctionState":
        psi = np.asarray(psi, dtype=np.complex128)
        return cls(psi.real.copy(), psi.imag.copy(), time)

    @property
    def size(self) -> int:
        return self.real.shape[0]

    @property
    def psi(self) -> np.ndarray:
        """Complex copy of the wavefunction."""
        return self.real + 1j * self.imag

    def density(self) -> np.ndarray:
        return self.real * self.real + self.imag * self.imag

    def norm(self, dx: float) -> float:
        """sqrt(sum |psi|^2 dx)."""
        return float(np.sqrt(squared_norm(self.real, self.imag) * dx))

    def normalize(self, dx: float) -> "WavefunctionState":
        """Rescale in place to unit norm; an all-zero state is left unchanged."""
        normalize_inplace(self.real, self.imag, float(dx))
        return self

    def copy(self) -> "WavefunctionState":
        return WavefunctionState(self.real.copy(), self.imag.copy(), self.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "real": self.real.tolist(),
            "imag": self.imag.tolist(),
            "time": self.time,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "WavefunctionState":
        return cls(np.asarray(data["real"]), np.asarray(data["imag"]), data.get("time", 0.0))

    def __repr__(self) -> str:
        return f"WavefunctionState(size={self.size}, time={self.time:.6g})"
