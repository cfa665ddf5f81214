#!/usr/bin/env python3
"""
Tendency evaluators.

The time stepper only relies on the TendencyEvaluator protocol: given the
prognostic state, the leapfrog index j2 selecting the time level that feeds
the dynamics, and zeroed scratch tendencies, return the filled tendencies.
Following SPEEDY, the dynamics read time level j2 while the physics always
read time level 1:

    Fnew = F(1) + dt * [ T_dyn(F(j2)) + T_phy(F(1)) ]
"""

import jax
import jax.numpy as jnp
from typing import Optional, Protocol, runtime_checkable

from .implicit import SemiImplicitOperator
from .state import Config, PrognosticState, Tendencies, check_leapfrog_index


@runtime_checkable
class TendencyEvaluator(Protocol):
    """Interface of the tendency computation consumed by TimeStepper."""

    def __call__(self, state: PrognosticState, j2: int, tendencies: Tendencies) -> Tendencies:
        """Fill the scratch tendencies from time level j2 (dynamics) and 1 (physics)."""
        ...


class RelaxationTendencies:
    """
    Linear relaxation model, enough to drive the time-stepping machinery.

    - Rayleigh friction of vorticity and divergence (dynamics, level j2)
    - Newtonian relaxation of temperature towards t_ref (physics, level 1)
    - Passive tracers
    followed by the semi-implicit correction of (divdt, tdt, psdt).
    """

    def __init__(self, config: Config, implicit: SemiImplicitOperator,
                 tau_friction: float = 86400.0, tau_radiation: float = 40.0 * 86400.0,
                 t_ref: Optional[jax.Array] = None):
        """
        Args:
            config: Model configuration
            implicit: Semi-implicit operator, initialized by the time stepper
            tau_friction: Friction timescale (s)
            tau_radiation: Radiative relaxation timescale (s)
            t_ref: Spectral relaxation temperature [mx, nx, kx] (default: zero)
        """
        if tau_friction <= 0.0 or tau_radiation <= 0.0:
            raise ValueError("relaxation timescales must be positive")
        self.config = config
        self.implicit = implicit
        self.tau_friction = tau_friction
        self.tau_radiation = tau_radiation
        if t_ref is None:
            t_ref = jnp.zeros((config.mx, config.nx, config.kx))
        self.t_ref = jnp.asarray(t_ref)

    def __call__(self, state: PrognosticState, j2: int, tendencies: Tendencies) -> Tendencies:
        state_dyn = state.slot(check_leapfrog_index("j2", j2))
        state_phy = state.slot(1)

        vordt = tendencies.vordt - state_dyn.vor / self.tau_friction
        divdt = tendencies.divdt - state_dyn.div / self.tau_friction
        tdt = tendencies.tdt - (state_phy.t - self.t_ref) / self.tau_radiation

        divdt, tdt, psdt = self.implicit.apply(divdt, tdt, tendencies.psdt)

        return tendencies._replace(vordt=vordt, divdt=divdt, tdt=tdt, psdt=psdt)
