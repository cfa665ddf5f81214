#!/usr/bin/env python3
"""
Semi-implicit operator for the gravity-wave terms.

Handles the fast linear terms implicitly to allow larger time steps. The
operator depends on the exact step size it supports, so it is initialized
for one dt at a time and refuses to serve any other.

Based on SPEEDY implicit.f90
"""

import logging
import math

import jax
import jax.numpy as jnp
import numpy as np
from typing import NamedTuple, Optional, Tuple

from .constants import DEFAULT_CONSTANTS, Constants
from .errors import SemiImplicitStateError
from .spectral import total_wavenumber
from .state import Config
from .vertical import VerticalGrid

logger = logging.getLogger(__name__)


class ImplicitCoefficients(NamedTuple):
    """Matrices of the implicit solver for one step size."""
    tref1: jax.Array  # R * T_ref [kx]
    dhsx: jax.Array   # xi * dhs [kx]
    xc: jax.Array     # Temperature increment due to divergence, times xi [kx, kx]
    xd: jax.Array     # Geopotential increment due to temperature [kx, kx]
    xj: jax.Array     # Inverse implicit operator per total wavenumber [kx, kx, max_l]
    elz: jax.Array    # xi * l(l+1) / a^2 [mx, nx]


class SemiImplicitOperator:
    """
    Semi-implicit solver for gravity wave terms.

    Solves the coupled system:
    (I - α²Δt²L) * [div_new, t_new, ps_new] = RHS

    where L includes vertical coupling through gravity waves.
    Built by initialize(dt), then applied at each timestep of size dt.
    """

    def __init__(self, config: Config, constants: Optional[Constants] = None,
                 vertical_grid: Optional[VerticalGrid] = None):
        self.config = config
        self.constants = DEFAULT_CONSTANTS if constants is None else constants
        self.vertical_grid = VerticalGrid(config.kx, self.constants) if vertical_grid is None else vertical_grid
        self.coefficients: Optional[ImplicitCoefficients] = None
        self._dt: Optional[float] = None

    @property
    def initialized_dt(self) -> Optional[float]:
        """Step size the operator is currently built for, or None."""
        return self._dt

    def initialize(self, dt: float) -> ImplicitCoefficients:
        """
        Build the implicit matrices for step size dt.

        Args:
            dt: Step size the next steps will use

        Returns:
            The new ImplicitCoefficients (also kept on the operator)
        """
        if dt <= 0.0:
            raise ValueError(f"dt={dt} must be positive")
        self.coefficients = self._setup_implicit_matrices(float(dt))
        self._dt = float(dt)
        logger.info("Semi-implicit operator initialized for dt=%gs", dt)
        return self.coefficients

    def require(self, dt: float) -> ImplicitCoefficients:
        """Return the coefficients, provided they were built for dt."""
        if self._dt is None:
            raise SemiImplicitStateError(
                f"semi-implicit operator used with dt={dt}s before initialize() was called"
            )
        if not math.isclose(self._dt, dt, rel_tol=1e-12):
            raise SemiImplicitStateError(
                f"semi-implicit operator initialized for dt={self._dt}s but used with dt={dt}s"
            )
        return self.coefficients

    def _setup_implicit_matrices(self, dt: float) -> ImplicitCoefficients:
        """
        Build matrices for semi-implicit time stepping.

        Creates matrices for solving:
        (I - α²Δt²L) * div_new = RHS
        """
        mx, nx, kx = self.config.mx, self.config.nx, self.config.kx
        alph = self.config.alph
        rearth = self.constants.rearth
        rgas = self.constants.rgas
        akap = self.constants.akap

        tref = self.vertical_grid.tref
        dhs = self.vertical_grid.dhs
        fsg = self.vertical_grid.fsg
        hsg = self.vertical_grid.hsg

        xi = dt * alph
        xxi = xi / (rearth * rearth)

        # ====================================================================
        # Vertical coupling matrices
        # ====================================================================

        # YA: temperature increment due to divergence
        ya = -akap * np.outer(tref, dhs)

        # XA: temperature increment due to log(ps) tendency
        xa = np.zeros((kx, kx))
        k = np.arange(1, kx)
        xa[k, k-1] = 0.5 * (akap * tref[k] / fsg[k] - (tref[k] - tref[k-1]) / dhs[k])
        k = np.arange(kx-1)
        xa[k, k] = 0.5 * (akap * tref[k] / fsg[k] - (tref[k+1] - tref[k]) / dhs[k])

        # XB: log(ps) increment due to divergence
        dsum = np.cumsum(dhs)
        rows = np.arange(kx-1)[:, np.newaxis]
        cols = np.arange(kx)[np.newaxis, :]
        xb = np.zeros((kx, kx))
        xb[:kx-1, :] = dhs[cols] * dsum[rows] - np.where(cols <= rows, dhs[cols], 0.0)

        # XC: total temperature increment
        xc = ya + xa @ xb

        # XD: geopotential increment due to temperature
        xd = np.zeros((kx, kx))
        k_grid, k1_grid = np.meshgrid(np.arange(kx), np.arange(kx), indexing='ij')
        upper = k1_grid > k_grid
        xd[upper] = rgas * np.log(hsg[k1_grid[upper]+1] / hsg[k1_grid[upper]])
        xd[np.arange(kx), np.arange(kx)] = rgas * np.log(hsg[1:] / fsg)

        # XE: geopotential increment due to divergence
        xe = xd @ xc

        # ====================================================================
        # Implicit operator for each total wavenumber l (0-based)
        # ====================================================================

        max_l = mx + nx - 1
        l_values = np.arange(max_l)
        xxx = l_values * (l_values + 1) / (rearth * rearth)

        xf = xi * xi * xxx[np.newaxis, np.newaxis, :] * (np.outer(rgas * tref, dhs) - xe)[:, :, np.newaxis]
        xf[np.arange(kx), np.arange(kx), :] += 1.0

        # Batch inversion over l
        xj = np.transpose(np.linalg.inv(np.transpose(xf, (2, 0, 1))), (1, 2, 0))

        l_grid = total_wavenumber(mx, nx)
        elz = l_grid * (l_grid + 1) * xxi

        return ImplicitCoefficients(
            tref1=jnp.array(self.vertical_grid.tref1),
            dhsx=jnp.array(xi * dhs),
            xc=jnp.array(xc * xi),
            xd=jnp.array(xd),
            xj=jnp.array(xj),
            elz=jnp.array(elz),
        )

    def apply(self, divdt: jax.Array, tdt: jax.Array, psdt: jax.Array) -> Tuple[jax.Array, jax.Array, jax.Array]:
        """
        Apply implicit corrections to tendencies for gravity wave terms.

        Args:
            divdt: Divergence tendency [mx, nx, kx] (complex)
            tdt: Temperature tendency [mx, nx, kx] (complex)
            psdt: Log surface pressure tendency [mx, nx] (complex)

        Returns:
            Updated (divdt, tdt, psdt) with implicit corrections
        """
        if self.coefficients is None:
            raise SemiImplicitStateError("semi-implicit operator applied before initialize() was called")
        return implicit_terms(self.coefficients, divdt, tdt, psdt)


@jax.jit
def implicit_terms(coefficients: ImplicitCoefficients, divdt: jax.Array, tdt: jax.Array,
                   psdt: jax.Array) -> Tuple[jax.Array, jax.Array, jax.Array]:
    """SPEEDY implicit_terms() for precomputed coefficients."""
    mx, nx = psdt.shape

    # Geopotential tendency from temperature and surface pressure
    ye = jnp.einsum('kl,mnl->mnk', coefficients.xd, tdt)
    ye = ye + coefficients.tref1[jnp.newaxis, jnp.newaxis, :] * psdt[:, :, jnp.newaxis]

    # Gravity wave term added to the divergence tendency
    yf = divdt + coefficients.elz[:, :, jnp.newaxis] * ye

    # Gather xj[:, :, l] for every (m, n) and solve
    l_indices = jnp.arange(mx)[:, jnp.newaxis] + jnp.arange(nx)[jnp.newaxis, :]
    xj = jnp.transpose(coefficients.xj[:, :, l_indices], (2, 3, 0, 1))  # [mx, nx, kx, kx]
    divdt_new = jnp.einsum('mnkl,mnl->mnk', xj, yf)

    # l = 0 has no gravity wave response
    divdt_new = divdt_new.at[0, 0, :].set(0.0)

    psdt_new = psdt - jnp.einsum('mnk,k->mn', divdt_new, coefficients.dhsx)
    tdt_new = tdt + jnp.einsum('kl,mnl->mnk', coefficients.xc, divdt_new)

    return divdt_new.astype(divdt.dtype), tdt_new.astype(tdt.dtype), psdt_new.astype(psdt.dtype)
