#!/usr/bin/env python3
"""
Type definitions for the time-stepping core.

Prognostic fields carry a trailing leapfrog axis of size 2:
    slot 1 (index 0) - filtered "current" time level F(1)
    slot 2 (index 1) - newest time level F(2)
Tracers carry one further trailing axis enumerating the tracers.

Leapfrog indices (l1, j1, j2) keep their values 1 and 2 throughout the
package; slot j lives at array position j - 1.
"""

import jax
import jax.numpy as jnp
from typing import NamedTuple, Optional

from .errors import LeapfrogIndexError

LEAPFROG_INDICES = (1, 2)


def check_leapfrog_index(name: str, value: int) -> int:
    """Raise LeapfrogIndexError unless value is the integer 1 or 2."""
    if not isinstance(value, int) or isinstance(value, bool) or value not in LEAPFROG_INDICES:
        raise LeapfrogIndexError(f"{name} must be 1 or 2, got {value!r}")
    return value

# ============================================================================
# Spectral Fields
# ============================================================================

class SpectralState(NamedTuple):
    """Single time level of spectral variables"""
    vor: jax.Array  # Vorticity [mx,nx,kx]
    div: jax.Array  # Divergence [mx,nx,kx]
    t: jax.Array    # Temperature [mx,nx,kx]
    ps: jax.Array   # Log surface pressure [mx,nx]
    tr: jax.Array   # Tracers [mx,nx,kx,ntr], tracer 0 is humidity


class Tendencies(NamedTuple):
    """Time derivatives of the prognostic variables (one time level)."""
    vordt: jax.Array  # [mx,nx,kx]
    divdt: jax.Array  # [mx,nx,kx]
    tdt: jax.Array    # [mx,nx,kx]
    psdt: jax.Array   # [mx,nx]
    trdt: jax.Array   # [mx,nx,kx,ntr]

    @classmethod
    def zeros(cls, config: 'Config', dtype=jnp.complex64) -> 'Tendencies':
        """Zero-initialized scratch tendencies for one step."""
        mx, nx, kx, ntr = config.mx, config.nx, config.kx, config.ntr
        return cls(
            vordt=jnp.zeros((mx, nx, kx), dtype=dtype),
            divdt=jnp.zeros((mx, nx, kx), dtype=dtype),
            tdt=jnp.zeros((mx, nx, kx), dtype=dtype),
            psdt=jnp.zeros((mx, nx), dtype=dtype),
            trdt=jnp.zeros((mx, nx, kx, ntr), dtype=dtype),
        )


class PrognosticState(NamedTuple):
    """
    Prognostic variables at both leapfrog time levels.

    Shapes:
        vor, div, t: [mx, nx, kx, 2]
        ps:          [mx, nx, 2]
        tr:          [mx, nx, kx, 2, ntr]
    """
    vor: jax.Array
    div: jax.Array
    t: jax.Array
    ps: jax.Array
    tr: jax.Array

    @classmethod
    def zeros(cls, config: 'Config', dtype=jnp.complex64) -> 'PrognosticState':
        mx, nx, kx, ntr = config.mx, config.nx, config.kx, config.ntr
        return cls(
            vor=jnp.zeros((mx, nx, kx, 2), dtype=dtype),
            div=jnp.zeros((mx, nx, kx, 2), dtype=dtype),
            t=jnp.zeros((mx, nx, kx, 2), dtype=dtype),
            ps=jnp.zeros((mx, nx, 2), dtype=dtype),
            tr=jnp.zeros((mx, nx, kx, 2, ntr), dtype=dtype),
        )

    @classmethod
    def from_spectral(cls, level: SpectralState) -> 'PrognosticState':
        """Both time levels start from the same spectral state."""
        def both(x, axis):
            return jnp.stack([x, x], axis=axis)

        return cls(
            vor=both(level.vor, -1),
            div=both(level.div, -1),
            t=both(level.t, -1),
            ps=both(level.ps, -1),
            tr=both(level.tr, -2),
        )

    def slot(self, j: int) -> SpectralState:
        """Return time level j (1 = filtered current, 2 = newest)."""
        i = check_leapfrog_index("j", j) - 1
        return SpectralState(
            vor=self.vor[..., i],
            div=self.div[..., i],
            t=self.t[..., i],
            ps=self.ps[..., i],
            tr=self.tr[..., i, :],
        )

# ============================================================================
# Configuration
# ============================================================================

class FilterCoefficients(NamedTuple):
    """Robert and Williams filter weights together with the step size."""
    robert_filter: float
    williams_filter: float
    dt: float

    @classmethod
    def create(cls, robert_filter: float, williams_filter: float, dt: float) -> 'FilterCoefficients':
        """Validated constructor."""
        if not 0.0 <= robert_filter < 1.0:
            raise ValueError(f"robert_filter={robert_filter} must lie in [0, 1)")
        if not 0.0 <= williams_filter <= 1.0:
            raise ValueError(f"williams_filter={williams_filter} must lie in [0, 1]")
        if dt <= 0.0:
            raise ValueError(f"dt={dt} must be positive")
        return cls(float(robert_filter), float(williams_filter), float(dt))


class Config(NamedTuple):
    """Model configuration"""
    # Spectral resolution
    trunc: int = 30     # Spectral truncation (T30)
    # Vertical levels
    kx: int = 8
    # Number of tracers, the first one being specific humidity
    ntr: int = 1

    # Time stepping
    dt: float = 2400.0  # Time step in seconds (default: 40 minutes)
    rob: float = 0.05   # Robert filter coefficient
    wil: float = 0.53   # Williams filter coefficient
    alph: float = 0.5   # Semi-implicit coefficient

    # Diffusion parameters
    npowhd: int = 4
    thd: float = 2.4        # Vorticity/temp diffusion timescale (hours)
    thdd: float = 2.4       # Divergence diffusion timescale (hours)
    thds: float = 12.0      # Stratospheric diffusion timescale (hours)
    tdrs: float = 24.0*30.0 # Stratospheric drag timescale (hours)

    # Derived parameters (filled in by create)
    mx: Optional[int] = None   # trunc + 1
    nx: Optional[int] = None   # trunc + 2

    @classmethod
    def create(cls, trunc: int = 30, dt: float = 2400.0, kx: int = 8, ntr: int = 1, **kwargs) -> 'Config':
        """
        Create configuration with automatic computation of derived parameters.

        Args:
            trunc: Spectral truncation (default: T30)
            dt: Model time step in seconds (default: 2400s = 40 min)
            kx: Number of vertical levels (default: 8)
            ntr: Number of tracers (default: 1, humidity only)
            **kwargs: Override any other Config parameters

        Returns:
            Config with all derived parameters filled in

        Example:
            config = Config.create(trunc=30, dt=2400.0, kx=8)
            config = Config.create(trunc=21, dt=3600.0, rob=0.1, wil=0.5)
        """
        if trunc < 1:
            raise ValueError(f"trunc={trunc} must be at least 1")
        if kx < 1:
            raise ValueError(f"kx={kx} must be at least 1")
        if ntr < 1:
            raise ValueError(f"ntr={ntr} must be at least 1")

        config = cls(trunc=trunc, kx=kx, ntr=ntr, dt=float(dt),
                     mx=trunc + 1, nx=trunc + 2, **kwargs)

        # Validate the filter weights and step size
        FilterCoefficients.create(config.rob, config.wil, config.dt)
        for name in ('thd', 'thdd', 'thds', 'tdrs'):
            if getattr(config, name) <= 0.0:
                raise ValueError(f"{name}={getattr(config, name)} must be positive")
        if config.npowhd < 1:
            raise ValueError(f"npowhd={config.npowhd} must be at least 1")
        return config

    def filter_coefficients(self, dt: Optional[float] = None) -> FilterCoefficients:
        """Filter coefficients of this run for step size dt (default: self.dt)."""
        return FilterCoefficients(self.rob, self.wil, self.dt if dt is None else float(dt))

    def __repr__(self) -> str:
        """Pretty print configuration."""
        return (
            f"Config(\n"
            f"  Resolution: T{self.trunc}, {self.kx} levels, {self.ntr} tracer(s)\n"
            f"  Spectral: mx={self.mx}, nx={self.nx}\n"
            f"  Time step: dt={self.dt}s ({self.dt/60:.1f} min)\n"
            f"  Semi-implicit: α={self.alph}, Robert={self.rob}, Williams={self.wil}\n"
            f"  Diffusion: thd={self.thd}h, thdd={self.thdd}h, thds={self.thds}h, tdrs={self.tdrs}h\n"
            f")"
        )
