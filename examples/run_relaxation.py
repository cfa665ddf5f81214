#!/usr/bin/env python3
import logging
import jax
#jax.config.update("jax_enable_x64", True)
import jax.numpy as jnp
from speedystep import (
    Config, PrognosticState, RelaxationTendencies, SemiImplicitOperator, SpectralState, TimeStepper,
    setup_logging,
)

trunc = 30
kx = 8
ntr = 2
dt = 2400.
nstep = 36 # 1 day of 2*dt leapfrog steps after startup
save_freq = 6
seed = 0

setup_logging(level=logging.INFO)

# Config
config = Config.create(trunc=trunc, dt=dt, kx=kx, ntr=ntr)
print(config)

# Initial state: small random vorticity and temperature anomalies
key_vr, key_vi, key_t = jax.random.split(jax.random.PRNGKey(seed), 3)
shape = (config.mx, config.nx, config.kx)
vor = 1e-6*(jax.random.normal(key_vr, shape) + 1j*jax.random.normal(key_vi, shape))
t = jax.random.normal(key_t, shape).astype(jnp.complex64)
state0 = PrognosticState.from_spectral(SpectralState(
   vor=vor.astype(jnp.complex64),
   div=jnp.zeros(shape, dtype=jnp.complex64),
   t=t,
   ps=jnp.zeros((config.mx, config.nx), dtype=jnp.complex64),
   tr=jnp.zeros(shape + (config.ntr,), dtype=jnp.complex64),
))

# Model
implicit = SemiImplicitOperator(config)
evaluator = RelaxationTendencies(config, implicit)
stepper = TimeStepper(config, evaluator, implicit)

# Run
state, trajectory = stepper.integrate(state0, nstep, save_freq=save_freq)
vor_norm = jnp.sqrt(jnp.sum(jnp.abs(trajectory.vor)**2, axis=(1, 2, 3)))
t_norm = jnp.sqrt(jnp.sum(jnp.abs(trajectory.t)**2, axis=(1, 2, 3)))
for i in range(vor_norm.shape[0]):
   print(f"step {i*save_freq:4d}: |vor| = {float(vor_norm[i]):.4e}, |t| = {float(t_norm[i]):.4e}")
