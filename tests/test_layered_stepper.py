import jax
import jax.numpy as jnp
import pytest

from speedystep.errors import LeapfrogIndexError, ShapeMismatchError
from speedystep.integration import step_field, step_layers, step_tracers, step_variable
from speedystep.spectral import SpectralTruncation
from speedystep.state import FilterCoefficients

COEFFICIENTS = FilterCoefficients(robert_filter=0.05, williams_filter=0.53, dt=2.0)


@pytest.mark.parametrize("l1", [1, 2])
def test_layers_match_independent_field_steps(l1):
    key1, key2 = jax.random.split(jax.random.PRNGKey(0))
    A = jax.random.normal(key1, (4, 2, 3, 2))
    tendency = jax.random.normal(key2, (4, 2, 3))

    out = step_layers(A, tendency, l1, COEFFICIENTS)

    assert out.shape == A.shape
    for k in range(3):
        expected = step_field(A[:, :, k, :], tendency[:, :, k], l1, COEFFICIENTS)
        assert jnp.allclose(out[:, :, k, :], expected)


def test_layers_apply_truncation_per_level():
    truncation = SpectralTruncation(trunc=2)
    A = jnp.zeros((3, 4, 2, 2))
    tendency = jnp.ones((3, 4, 2))

    out = step_layers(A, tendency, 1, COEFFICIENTS, truncation)

    for k in range(2):
        assert jnp.allclose(out[:, :, k, 1], COEFFICIENTS.williams_filter * COEFFICIENTS.dt * truncation.trfilt)


def test_layers_shape_mismatch_raises():
    with pytest.raises(ShapeMismatchError):
        step_layers(jnp.zeros((4, 2, 3, 2)), jnp.zeros((4, 2, 2)), 2, COEFFICIENTS)
    with pytest.raises(ShapeMismatchError):
        step_layers(jnp.zeros((4, 2, 2)), jnp.zeros((4, 2)), 2, COEFFICIENTS)


def test_layers_invalid_index_raises():
    with pytest.raises(LeapfrogIndexError):
        step_layers(jnp.zeros((4, 2, 3, 2)), jnp.zeros((4, 2, 3)), 0, COEFFICIENTS)


def test_tracers_match_independent_layer_steps():
    key1, key2 = jax.random.split(jax.random.PRNGKey(1))
    tr = jax.random.normal(key1, (4, 2, 3, 2, 2))
    trdt = jax.random.normal(key2, (4, 2, 3, 2))

    out = step_tracers(tr, trdt, 2, COEFFICIENTS)

    assert out.shape == tr.shape
    for i in range(2):
        expected = step_layers(tr[..., i], trdt[..., i], 2, COEFFICIENTS)
        assert jnp.allclose(out[..., i], expected)


def test_tracers_shape_mismatch_raises():
    with pytest.raises(ShapeMismatchError):
        step_tracers(jnp.zeros((4, 2, 3, 2, 2)), jnp.zeros((4, 2, 3, 3)), 2, COEFFICIENTS)


def test_step_variable_dispatches_on_rank():
    A2 = jnp.ones((4, 2, 2))
    A3 = jnp.ones((4, 2, 3, 2))
    A4 = jnp.ones((4, 2, 3, 2, 2))

    out2 = step_variable(A2, jnp.full((4, 2), 0.5), 2, COEFFICIENTS)
    out3 = step_variable(A3, jnp.full((4, 2, 3), 0.5), 2, COEFFICIENTS)
    out4 = step_variable(A4, jnp.full((4, 2, 3, 2), 0.5), 2, COEFFICIENTS)

    assert out2.shape == A2.shape
    assert out3.shape == A3.shape
    assert out4.shape == A4.shape
    assert jnp.allclose(out3[:, :, 1, :], out2)
    assert jnp.allclose(out4[:, :, 2, :, 1], out2)


def test_step_variable_rejects_unsupported_rank():
    with pytest.raises(ShapeMismatchError):
        step_variable(jnp.zeros((4, 2)), jnp.zeros((4,)), 2, COEFFICIENTS)
