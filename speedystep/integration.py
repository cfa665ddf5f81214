#!/usr/bin/env python3
"""
Time stepping for the spectral model.

Based on SPEEDY time_stepping.f90.
Implements the leapfrog scheme with the Robert-Williams filter:

    Fnew = F(1) + dt * tendency
    F(1) = F(l1) + wil*eps*(F(1) - 2*F(l1) + Fnew)
    F(2) = Fnew - (1-wil)*eps*(F(1) - 2*F(l1) + Fnew)

with eps = 1 - 2*rob (rob = 0 while l1 = 1). The curvature term
F(1) - 2*F(l1) + Fnew is evaluated once, from the time levels before the
update, and shared by both assignments.

Leapfrog indices:
    j1 = l1 = 1, j2 = 1 : forward time step
    j1 = l1 = 1, j2 = 2 : initial leapfrog time step
    j1 = l1 = 2, j2 = 2 : leapfrog time step with time filter
"""

import logging
from functools import partial
from typing import Callable, List, Optional, Tuple

import jax
import jax.numpy as jnp

from .diffusion import HorizontalDiffusion
from .errors import ShapeMismatchError
from .implicit import SemiImplicitOperator
from .spectral import SpectralTruncation
from .state import (
    Config, FilterCoefficients, PrognosticState, SpectralState, Tendencies,
    check_leapfrog_index,
)
from .tendencies import TendencyEvaluator

logger = logging.getLogger(__name__)

Truncation = Callable[[jax.Array], jax.Array]

# ============================================================================
# Field Stepper
# ============================================================================

def _check_shapes(A: jax.Array, tendency: jax.Array, ndim: int, leapfrog_axis: int = -1):
    """Validate a prognostic field against its tendency."""
    if A.ndim != ndim:
        raise ShapeMismatchError(f"expected a {ndim}D prognostic field, got shape {A.shape}")
    if A.shape[leapfrog_axis] != 2:
        raise ShapeMismatchError(f"leapfrog axis of {A.shape} must have size 2")
    slot_shape = A.shape[:leapfrog_axis] + (A.shape[leapfrog_axis+1:] if leapfrog_axis != -1 else ())
    if tendency.shape != slot_shape:
        raise ShapeMismatchError(f"tendency shape {tendency.shape} does not match {slot_shape}")
    if jnp.iscomplexobj(tendency) and not jnp.iscomplexobj(A):
        raise ShapeMismatchError(f"complex tendency {tendency.dtype} for a real field {A.dtype}")


@partial(jax.jit, static_argnames=['l1'])
def _robert_williams_update(A: jax.Array, tendency: jax.Array, l1: int,
                            coefficients: FilterCoefficients) -> jax.Array:
    robert_filter, williams_filter, dt = coefficients

    eps = 0.0 if l1 == 1 else robert_filter
    eps = 1.0 - 2.0 * eps

    A1 = A[..., 0]
    Al1 = A[..., l1 - 1]

    # Forward step from F(1), leapfrog or not
    Anew = A1 + dt * tendency

    delta = A1 - 2.0 * Al1 + Anew

    # Robert's filter
    A_filt = Al1 + williams_filter * eps * delta
    # Williams' filter
    A_new = Anew - (1.0 - williams_filter) * eps * delta

    return jnp.stack([A_filt, A_new], axis=-1).astype(A.dtype)


def step_field(A: jax.Array, tendency: jax.Array, l1: int, coefficients: FilterCoefficients,
               truncation: Optional[Truncation] = None) -> jax.Array:
    """
    Time step of a 2D field.

    Args:
        A: Prognostic field [mx, nx, 2]
        tendency: Its tendency [mx, nx]
        l1: Leapfrog index for time filtering (1 or 2)
        coefficients: Robert/Williams filter weights and step size
        truncation: Spectral truncation applied to the tendency first

    Returns:
        The updated field [mx, nx, 2]
    """
    _check_shapes(A, tendency, ndim=3)
    check_leapfrog_index("l1", l1)

    if truncation is not None:
        tendency = truncation(tendency)

    return _robert_williams_update(A, tendency, l1, coefficients)

# ============================================================================
# Layered Stepper
# ============================================================================

def step_layers(A: jax.Array, tendency: jax.Array, l1: int, coefficients: FilterCoefficients,
                truncation: Optional[Truncation] = None) -> jax.Array:
    """
    Time step of a layered field, one independent 2D step per level.

    Args:
        A: Prognostic field [mx, nx, nlev, 2]
        tendency: Its tendency [mx, nx, nlev]

    Returns:
        The updated field [mx, nx, nlev, 2]
    """
    _check_shapes(A, tendency, ndim=4)
    check_leapfrog_index("l1", l1)

    def step_level(A_level, tendency_level):
        return step_field(A_level, tendency_level, l1, coefficients, truncation)

    return jax.vmap(step_level, in_axes=(2, 2), out_axes=2)(A, tendency)


def step_tracers(tr: jax.Array, trdt: jax.Array, l1: int, coefficients: FilterCoefficients,
                 truncation: Optional[Truncation] = None) -> jax.Array:
    """
    Time step of a tracer stack.

    Args:
        tr: Tracers [mx, nx, nlev, 2, ntr]
        trdt: Tracer tendencies [mx, nx, nlev, ntr]
    """
    _check_shapes(tr, trdt, ndim=5, leapfrog_axis=-2)
    check_leapfrog_index("l1", l1)

    def step_tracer(tr_i, trdt_i):
        return step_layers(tr_i, trdt_i, l1, coefficients, truncation)

    return jax.vmap(step_tracer, in_axes=(4, 3), out_axes=4)(tr, trdt)


def step_variable(A: jax.Array, tendency: jax.Array, l1: int, coefficients: FilterCoefficients,
                  truncation: Optional[Truncation] = None) -> jax.Array:
    """Dispatch on the rank of the prognostic field (3: 2D, 4: layered, 5: tracers)."""
    if A.ndim == 3:
        return step_field(A, tendency, l1, coefficients, truncation)
    if A.ndim == 4:
        return step_layers(A, tendency, l1, coefficients, truncation)
    if A.ndim == 5:
        return step_tracers(A, tendency, l1, coefficients, truncation)
    raise ShapeMismatchError(f"unsupported prognostic field shape {A.shape}")

# ============================================================================
# Step Orchestrator and Startup
# ============================================================================

class TimeStepper:
    """
    Leapfrog + Robert-Williams time stepping of the full prognostic state.

    Implements:
    - Forward step at dt/2 and unfiltered leapfrog at dt for startup
    - Filtered leapfrog over 2*dt afterwards
    - Horizontal diffusion, stratospheric drag and tracer diffusion of the
      tendencies before every update

    The semi-implicit operator is shared with the tendency evaluator and
    re-initialized whenever the step size changes.
    """

    def __init__(self, config: Config, evaluator: TendencyEvaluator, implicit: SemiImplicitOperator,
                 diffusion: Optional[HorizontalDiffusion] = None,
                 truncation: Optional[Truncation] = None):
        """
        Args:
            config: Model configuration
            evaluator: Tendency evaluator
            implicit: Semi-implicit operator
            diffusion: Horizontal diffusion (default: built from config)
            truncation: Spectral truncation (default: triangular at config.trunc)
        """
        self.config = config
        self.evaluator = evaluator
        self.implicit = implicit
        self.diffusion = HorizontalDiffusion(config) if diffusion is None else diffusion
        self.truncation = SpectralTruncation.from_config(config) if truncation is None else truncation

    def step(self, state: PrognosticState, j1: int, j2: int, dt: float) -> PrognosticState:
        """
        Perform one time step.

        Args:
            state: Prognostic state at both time levels
            j1: Index for time filtering (1: no filter, 2: filter)
            j2: Time level feeding the dynamical tendencies
            dt: Step size; the semi-implicit operator must be initialized for it

        Returns:
            Updated prognostic state
        """
        check_leapfrog_index("j1", j1)
        check_leapfrog_index("j2", j2)
        if dt <= 0.0:
            raise ValueError(f"dt={dt} must be positive")
        self.implicit.require(dt)
        logger.debug("Step j1=%d j2=%d dt=%gs", j1, j2, dt)

        # ====================================================================
        # 1. Compute tendencies
        # ====================================================================

        tendencies = Tendencies.zeros(self.config, dtype=state.vor.dtype)
        tendencies = self.evaluator(state, j2, tendencies)

        # ====================================================================
        # 2. Horizontal diffusion
        # ====================================================================

        tendencies = self._add_horizontal_diffusion(state.slot(1), tendencies, dt)

        # ====================================================================
        # 3. Time integration with Robert-Williams filter
        # ====================================================================

        eps = 0.0 if j1 == 1 else self.config.rob
        coefficients = FilterCoefficients(eps, self.config.wil, dt)

        ps = step_variable(state.ps, tendencies.psdt, j1, coefficients, self.truncation)
        vor = step_variable(state.vor, tendencies.vordt, j1, coefficients, self.truncation)
        div = step_variable(state.div, tendencies.divdt, j1, coefficients, self.truncation)
        t = step_variable(state.t, tendencies.tdt, j1, coefficients, self.truncation)
        tr = step_variable(state.tr, tendencies.trdt, j1, coefficients, self.truncation)

        return PrognosticState(vor=vor, div=div, t=t, ps=ps, tr=tr)

    def _add_horizontal_diffusion(self, current: SpectralState, tendencies: Tendencies,
                                  dt: float) -> Tendencies:
        """
        Diffuse the tendencies against time level 1.

        Application order (from time_stepping.f90):
        1. Vorticity, divergence and corrected temperature
        2. Stratospheric zonal wind damping (m=0 modes, top level)
        3. Stratospheric extra diffusion (∇², all levels)
        4. Corrected humidity (tracer 0) and the remaining tracers
        """
        diffusion = self.diffusion
        damping = diffusion.damping(dt)

        vordt = diffusion.diffuse(current.vor, tendencies.vordt, damping.dmp, damping.dmp1)
        divdt = diffusion.diffuse(current.div, tendencies.divdt, damping.dmpd, damping.dmp1d)

        ctmp = diffusion.corrected_temperature(current.t)
        tdt = diffusion.diffuse(ctmp, tendencies.tdt, damping.dmp, damping.dmp1)

        vordt = diffusion.stratospheric_drag(vordt, current.vor)
        divdt = diffusion.stratospheric_drag(divdt, current.div)

        vordt = diffusion.diffuse(current.vor, vordt, damping.dmps, damping.dmp1s)
        divdt = diffusion.diffuse(current.div, divdt, damping.dmps, damping.dmp1s)
        tdt = diffusion.diffuse(ctmp, tdt, damping.dmps, damping.dmp1s)

        trdt = tendencies.trdt
        qcorr = diffusion.corrected_humidity(current.tr[..., 0])
        trdt = trdt.at[..., 0].set(diffusion.diffuse(qcorr, trdt[..., 0], damping.dmpd, damping.dmp1d))
        if trdt.shape[-1] > 1:
            trdt = trdt.at[..., 1:].set(
                diffusion.diffuse(current.tr[..., 1:], trdt[..., 1:], damping.dmp, damping.dmp1)
            )

        return tendencies._replace(vordt=vordt, divdt=divdt, tdt=tdt, trdt=trdt)

    def first_step(self, state: PrognosticState) -> PrognosticState:
        """
        Initialize the semi-implicit operator and perform the initial steps.

        1. Forward step with dt/2
        2. Initial (unfiltered) leapfrog step with dt
        3. Leave the operator initialized for the 2*dt leapfrog steps

        Args:
            state: Initial state

        Returns:
            State ready for regular leapfrog stepping
        """
        dt = self.config.dt

        logger.info("Startup: forward step with dt/2 = %gs", 0.5 * dt)
        self.implicit.initialize(0.5 * dt)
        state = self.step(state, 1, 1, 0.5 * dt)

        logger.info("Startup: initial leapfrog step with dt = %gs", dt)
        self.implicit.initialize(dt)
        state = self.step(state, 1, 2, dt)

        self.implicit.initialize(2.0 * dt)
        return state

    def integrate(self, state0: PrognosticState, nstep: int,
                  save_freq: Optional[int] = None) -> Tuple[PrognosticState, Optional[SpectralState]]:
        """
        Integrate the model forward in time.

        The startup steps count as the first step; every further step is a
        filtered leapfrog step over 2*dt.

        Args:
            state0: Initial state (both time levels)
            nstep: Number of steps (>= 1)
            save_freq: If provided, save time level 2 every save_freq steps.
                    Must divide nstep evenly.

        Returns:
            final_state: State after nstep steps
            trajectory: If save_freq provided, SpectralState trajectory from
                    state0 to final_state (length = nstep/save_freq + 1)
        """
        if nstep < 1:
            raise ValueError(f"nstep={nstep} must be at least 1")
        if save_freq is not None and (save_freq < 1 or nstep % save_freq != 0):
            raise ValueError(f"save_freq={save_freq} must divide nstep={nstep}")

        saved: List[SpectralState] = [state0.slot(2)]
        state = state0
        for istep in range(1, nstep + 1):
            if istep == 1:
                state = self.first_step(state)
            else:
                state = self.step(state, 2, 2, 2.0 * self.config.dt)
            if save_freq is not None and istep % save_freq == 0:
                saved.append(state.slot(2))

        logger.info("Integrated %d steps", nstep)
        if save_freq is None:
            return state, None
        trajectory = jax.tree_util.tree_map(lambda *xs: jnp.stack(xs, axis=0), *saved)
        return state, trajectory
