import jax
import jax.numpy as jnp
import numpy as np
import pytest

from speedystep.errors import LeapfrogIndexError, ShapeMismatchError
from speedystep.integration import step_field
from speedystep.spectral import SpectralTruncation
from speedystep.state import FilterCoefficients


def _random_field(seed, shape=(4, 2)):
    key1, key2 = jax.random.split(jax.random.PRNGKey(seed))
    A = jax.random.normal(key1, shape + (2,))
    tendency = jax.random.normal(key2, shape)
    return A, tendency


def test_end_to_end_filtered_leapfrog():
    A = jnp.ones((4, 2, 2))
    tendency = jnp.full((4, 2), 0.5)
    coefficients = FilterCoefficients(robert_filter=0.1, williams_filter=0.5, dt=2.0)

    out = step_field(A, tendency, 2, coefficients)

    assert out.shape == (4, 2, 2)
    assert jnp.allclose(out[..., 0], 1.4)
    assert jnp.allclose(out[..., 1], 1.6)


@pytest.mark.parametrize("l1", [1, 2])
@pytest.mark.parametrize("robert_filter", [0.0, 0.05, 0.3])
def test_steady_state_is_unchanged(l1, robert_filter):
    A1 = jax.random.normal(jax.random.PRNGKey(1), (5, 3))
    A = jnp.stack([A1, A1], axis=-1)
    coefficients = FilterCoefficients(robert_filter, 0.53, 2400.0)

    out = step_field(A, jnp.zeros((5, 3)), l1, coefficients)

    np.testing.assert_array_equal(out[..., 0], A1)
    np.testing.assert_array_equal(out[..., 1], A1)


def test_forward_step_uses_delta_from_slot1_only():
    A, tendency = _random_field(2)
    wil, dt = 0.53, 3.0
    out = step_field(A, tendency, 1, FilterCoefficients(0.2, wil, dt))

    Anew = A[..., 0] + dt * tendency
    delta = Anew - A[..., 0]
    assert jnp.allclose(out[..., 0], A[..., 0] + wil * delta)
    assert jnp.allclose(out[..., 1], Anew - (1.0 - wil) * delta)


def test_forward_step_ignores_robert_filter():
    A, tendency = _random_field(3)
    out_a = step_field(A, tendency, 1, FilterCoefficients(0.0, 0.53, 1.0))
    out_b = step_field(A, tendency, 1, FilterCoefficients(0.4, 0.53, 1.0))
    np.testing.assert_array_equal(out_a, out_b)


def test_leapfrog_blends_against_slot2():
    A, tendency = _random_field(4)
    rob, wil, dt = 0.05, 0.53, 2.0
    out = step_field(A, tendency, 2, FilterCoefficients(rob, wil, dt))

    eps = 1.0 - 2.0 * rob
    Anew = A[..., 0] + dt * tendency
    delta = A[..., 0] - 2.0 * A[..., 1] + Anew
    assert jnp.allclose(out[..., 0], A[..., 1] + wil * eps * delta)
    assert jnp.allclose(out[..., 1], Anew - (1.0 - wil) * eps * delta)


def test_full_williams_weight_gives_forward_euler_slot2():
    A, tendency = _random_field(5)
    dt = 2.0
    out = step_field(A, tendency, 2, FilterCoefficients(0.0, 1.0, dt))
    np.testing.assert_array_equal(out[..., 1], A[..., 0] + dt * tendency)


def test_tendency_is_truncated_before_update():
    truncation = SpectralTruncation(trunc=3)
    A = jnp.zeros((4, 5, 2))
    tendency = jnp.ones((4, 5))
    wil, dt = 0.5, 2.0

    out = step_field(A, tendency, 1, FilterCoefficients(0.0, wil, dt), truncation)

    expected = wil * dt * truncation.trfilt
    assert jnp.allclose(out[..., 1], expected)
    assert jnp.all(out[3, 1:, :] == 0.0)


def test_horizontal_shape_mismatch_raises():
    A = jnp.zeros((4, 2, 2))
    with pytest.raises(ShapeMismatchError):
        step_field(A, jnp.zeros((3, 2)), 2, FilterCoefficients(0.05, 0.53, 1.0))
    with pytest.raises(ShapeMismatchError):
        step_field(A, jnp.zeros((4, 2, 1)), 2, FilterCoefficients(0.05, 0.53, 1.0))


def test_leapfrog_axis_must_have_size_two():
    A = jnp.zeros((4, 2, 3))
    with pytest.raises(ShapeMismatchError):
        step_field(A, jnp.zeros((4, 2)), 2, FilterCoefficients(0.05, 0.53, 1.0))


def test_shape_mismatch_is_a_value_error():
    with pytest.raises(ValueError):
        step_field(jnp.zeros((4, 2, 2)), jnp.zeros((2, 4)), 1, FilterCoefficients(0.05, 0.53, 1.0))


@pytest.mark.parametrize("l1", [0, 3, -1])
def test_invalid_leapfrog_index_raises(l1):
    with pytest.raises(LeapfrogIndexError):
        step_field(jnp.zeros((4, 2, 2)), jnp.zeros((4, 2)), l1, FilterCoefficients(0.05, 0.53, 1.0))


def test_complex_dtype_is_preserved():
    A = (jnp.ones((4, 2, 2)) + 1j * jnp.ones((4, 2, 2))).astype(jnp.complex64)
    tendency = jnp.full((4, 2), 0.5 - 0.5j, dtype=jnp.complex64)

    out = step_field(A, tendency, 2, FilterCoefficients(0.1, 0.5, 2.0))

    assert out.dtype == jnp.complex64
    assert jnp.allclose(out[..., 0], 1.4 + 0.6j, atol=1e-6)


def test_complex_tendency_for_real_field_raises():
    A = jnp.ones((4, 2, 2))
    tendency = jnp.full((4, 2), 0.5 + 0.5j)
    with pytest.raises(ShapeMismatchError):
        step_field(A, tendency, 2, FilterCoefficients(0.1, 0.5, 2.0))


def test_real_tendency_for_complex_field_is_accepted():
    A = jnp.ones((4, 2, 2), dtype=jnp.complex128)
    out = step_field(A, jnp.full((4, 2), 0.5), 2, FilterCoefficients(0.1, 0.5, 2.0))
    assert jnp.allclose(out[..., 1], 1.6)


@pytest.mark.parametrize("l1", [1.0, 2.0, True])
def test_non_integer_leapfrog_index_raises(l1):
    with pytest.raises(LeapfrogIndexError):
        step_field(jnp.zeros((4, 2, 2)), jnp.zeros((4, 2)), l1, FilterCoefficients(0.05, 0.53, 1.0))
