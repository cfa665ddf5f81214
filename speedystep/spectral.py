#!/usr/bin/env python3
"""
Triangular spectral truncation.

Spectral fields use the SPEEDY layout [mx, nx, ...] with mx = trunc + 1,
nx = trunc + 2 and total wavenumber l = m + n. Modes with l > trunc cannot be
represented and are zeroed.

Based on SPEEDY spectral.f90 trunct().
"""

import jax
import jax.numpy as jnp
import numpy as np
from typing import Optional

from .errors import ShapeMismatchError
from .state import Config


def total_wavenumber(mx: int, nx: int) -> np.ndarray:
    """Total wavenumber l = m + n on the [mx, nx] spectral grid."""
    m_grid, n_grid = np.meshgrid(np.arange(mx), np.arange(nx), indexing='ij')
    return m_grid + n_grid


class SpectralTruncation:
    """
    Triangular truncation filter.

    Pure and shape preserving: the mask is broadcast over any trailing axes
    (levels, tracers) of the input.
    """

    def __init__(self, trunc: int, mx: Optional[int] = None, nx: Optional[int] = None):
        self.trunc = trunc
        self.mx = trunc + 1 if mx is None else mx
        self.nx = trunc + 2 if nx is None else nx

        # Keep if l <= trunc
        self.trfilt = jnp.array(np.where(total_wavenumber(self.mx, self.nx) <= trunc, 1.0, 0.0))

    @classmethod
    def from_config(cls, config: Config) -> 'SpectralTruncation':
        return cls(config.trunc, config.mx, config.nx)

    def __call__(self, spec: jax.Array) -> jax.Array:
        if spec.shape[:2] != (self.mx, self.nx):
            raise ShapeMismatchError(
                f"spectral field of shape {spec.shape} does not start with ({self.mx}, {self.nx})"
            )
        mask = self.trfilt.reshape(self.trfilt.shape + (1,) * (spec.ndim - 2))
        return (spec * mask).astype(spec.dtype)
