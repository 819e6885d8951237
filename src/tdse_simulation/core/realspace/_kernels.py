import numpy as np
from numba import njit


@njit(cache=True)
def apply_phase(real, imag, op_real, op_imag):
    """In place: (real + i imag) *= (op_real + i op_imag)."""
    for j in range(real.shape[0]):
        re = real[j]
        im = imag[j]
        c = op_real[j]
        s = op_imag[j]
        real[j] = re * c - im * s
        imag[j] = re * s + im * c


@njit(cache=True)
def squared_norm(real, imag):
    acc = 0.0
    for j in range(real.shape[0]):
        acc += real[j] * real[j] + imag[j] * imag[j]
    return acc


@njit(cache=True)
def normalize_inplace(real, imag, dx):
    """Rescale so that sum(|psi|^2) dx == 1. Returns the norm before scaling."""
    norm = np.sqrt(squared_norm(real, imag) * dx)
    if norm > 0.0:
        inv = 1.0 / norm
        for j in range(real.shape[0]):
            real[j] *= inv
            imag[j] *= inv
    return norm


@njit(cache=True)
def edge_probability(real, imag, width):
    """sum(|psi|^2) over the first and last ``width`` samples."""
    n = real.shape[0]
    acc = 0.0
    for j in range(width):
        acc += real[j] * real[j] + imag[j] * imag[j]
        m = n - 1 - j
        acc += real[m] * real[m] + imag[m] * imag[m]
    return acc
