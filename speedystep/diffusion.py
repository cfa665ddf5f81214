#!/usr/bin/env python3
"""
Horizontal diffusion of spectral tendencies.

Based on SPEEDY:
- horizontal_diffusion.f90 (coefficients, backward implicit formula)
- forcing.f90 (horizontal reference corrections tcorh, qcorh)

Uses ∇^(2*npowhd) hyperdiffusion for:
- Vorticity and temperature: thd timescale
- Divergence and humidity: thdd timescale
- Stratospheric extra diffusion (∇² only): thds timescale
"""

import jax
import jax.numpy as jnp
import numpy as np
from typing import NamedTuple, Optional

from .constants import DEFAULT_CONSTANTS, Constants
from .errors import ShapeMismatchError
from .spectral import total_wavenumber
from .state import Config
from .vertical import VerticalGrid


class DampingCoefficients(NamedTuple):
    """Explicit (dmp*) and implicit (dmp1*) damping pairs for one step size."""
    dmp: jax.Array    # Vorticity and temperature [mx, nx]
    dmp1: jax.Array
    dmpd: jax.Array   # Divergence and humidity [mx, nx]
    dmp1d: jax.Array
    dmps: jax.Array   # Stratosphere [mx, nx]
    dmp1s: jax.Array


class HorizontalDiffusion:
    """
    Horizontal diffusion operator and the reference-profile corrections
    applied to temperature and humidity before they are diffused.
    """

    def __init__(self, config: Config, constants: Optional[Constants] = None,
                 vertical_grid: Optional[VerticalGrid] = None,
                 phis: Optional[jax.Array] = None, qcorh: Optional[jax.Array] = None):
        """
        Args:
            config: Model configuration
            constants: Physical constants
            vertical_grid: Vertical grid structure
            phis: Spectral surface geopotential [mx, nx] (default: flat surface)
            qcorh: Horizontal humidity correction [mx, nx] (default: zero)
        """
        self.config = config
        self.constants = DEFAULT_CONSTANTS if constants is None else constants
        self.vertical_grid = VerticalGrid(config.kx, self.constants) if vertical_grid is None else vertical_grid

        self._setup_diffusion()
        self._setup_reference_corrections(phis, qcorh)

    def _setup_diffusion(self):
        """Explicit damping coefficients and the stratospheric drag rate."""
        mx, nx, trunc = self.config.mx, self.config.nx, self.config.trunc

        # Convert to 1/seconds
        hdiff = 1.0 / (self.config.thd * 3600.0)
        hdifd = 1.0 / (self.config.thdd * 3600.0)
        hdifs = 1.0 / (self.config.thds * 3600.0)

        # Normalized Laplacian: l(l+1) / [T(T+1)]
        twn = total_wavenumber(mx, nx).astype(float)
        elap = twn * (twn + 1.0) / float(trunc * (trunc + 1))
        elapn = elap ** self.config.npowhd

        self.dmp = jnp.array(hdiff * elapn)
        self.dmpd = jnp.array(hdifd * elapn)
        self.dmps = jnp.array(hdifs * elap)  # note: elap, not elapn
        self.sdrag = 1.0 / (self.config.tdrs * 3600.0)

    def _setup_reference_corrections(self, phis, qcorh):
        """
        Reference-profile corrections for temperature and humidity.

        The horizontal parts depend on the surface geopotential, the vertical
        parts on sigma only.
        """
        mx, nx, kx = self.config.mx, self.config.nx, self.config.kx
        fsg = self.vertical_grid.fsg
        k_range = np.arange(kx)

        self.tcorv = jnp.array(np.where(k_range >= 1, fsg ** self.constants.rgam, 0.0))
        self.qcorv = jnp.array(np.where(k_range >= 2, fsg ** self.constants.qexp, 0.0))

        gamlat = self.constants.gamma / (1000.0 * self.constants.grav)
        if phis is None:
            self.tcorh = jnp.zeros((mx, nx))
        else:
            self._check_horizontal('phis', phis)
            self.tcorh = gamlat * jnp.asarray(phis)

        if qcorh is None:
            self.qcorh = jnp.zeros((mx, nx))
        else:
            self._check_horizontal('qcorh', qcorh)
            self.qcorh = jnp.asarray(qcorh)

    def _check_horizontal(self, name, field):
        expected = (self.config.mx, self.config.nx)
        if tuple(jnp.shape(field)) != expected:
            raise ShapeMismatchError(f"{name} has shape {jnp.shape(field)}, expected {expected}")

    def damping(self, dt: float) -> DampingCoefficients:
        """
        Damping pairs for the backward implicit formula with step dt:
            dmp1 = 1/(1 + dmp*dt)
        """
        return DampingCoefficients(
            dmp=self.dmp, dmp1=1.0 / (1.0 + self.dmp * dt),
            dmpd=self.dmpd, dmp1d=1.0 / (1.0 + self.dmpd * dt),
            dmps=self.dmps, dmp1s=1.0 / (1.0 + self.dmps * dt),
        )

    def corrected_temperature(self, t: jax.Array) -> jax.Array:
        """t + tcorh*tcorv for a [mx, nx, kx] temperature field."""
        return t + self.tcorh[:, :, jnp.newaxis] * self.tcorv[jnp.newaxis, jnp.newaxis, :]

    def corrected_humidity(self, q: jax.Array) -> jax.Array:
        """q + qcorh*qcorv for a [mx, nx, kx] humidity field."""
        return q + self.qcorh[:, :, jnp.newaxis] * self.qcorv[jnp.newaxis, jnp.newaxis, :]

    def stratospheric_drag(self, fdt: jax.Array, field: jax.Array) -> jax.Array:
        """Damp the zonal-mean modes (m=0) of the top level (k=0)."""
        return fdt.at[0, :, 0].add(-self.sdrag * field[0, :, 0])

    @staticmethod
    @jax.jit
    def diffuse(field: jax.Array, fdt: jax.Array, dmp: jax.Array, dmp1: jax.Array) -> jax.Array:
        """
        Add horizontal diffusion to a tendency:
            fdt_out = (fdt_in - dmp*field) * dmp1

        field/fdt are [mx, nx] or [mx, nx, kx]; the [mx, nx] coefficients
        are broadcast over levels.
        """
        if field.shape != fdt.shape:
            raise ShapeMismatchError(f"field {field.shape} and tendency {fdt.shape} differ")
        extra = (1,) * (fdt.ndim - 2)
        dmp = dmp.reshape(dmp.shape + extra)
        dmp1 = dmp1.reshape(dmp1.shape + extra)
        return ((fdt - dmp * field) * dmp1).astype(fdt.dtype)
