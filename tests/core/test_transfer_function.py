import numpy as np
import pytest
from numpy.testing import assert_allclose

from pyspectral.core.transfer_function import TransferFunction, poly_add, poly_convolve


def test_poly_convolve():
    assert_allclose(poly_convolve([1.0, 2.0], [1.0, 3.0]), [1.0, 5.0, 6.0])
    assert poly_convolve([], [1.0]).size == 0


def test_poly_add_pads_shorter():
    assert_allclose(poly_add([1.0, 2.0, 3.0], [1.0]), [2.0, 2.0, 3.0])


def test_fir_impulse_response_is_kernel():
    tf = TransferFunction([0.5, 0.25, 0.125])
    response = tf.impulse_response(8)
    assert_allclose(response, [0.5, 0.25, 0.125, 0, 0, 0, 0, 0])


def test_fir_impulse_response_never_truncates_kernel():
    tf = TransferFunction(np.ones(10))
    assert tf.impulse_response(4).shape == (10,)


def test_iir_impulse_response():
    tf = TransferFunction([1.0], [1.0, -0.5])
    assert_allclose(tf.impulse_response(6), 0.5 ** np.arange(6))


def test_frequency_response():
    response = TransferFunction([1.0, 1.0]).frequency_response(16)
    assert response.shape == (9,)
    assert abs(response[0]) == pytest.approx(2.0)
    assert abs(response[-1]) == pytest.approx(0.0, abs=1e-12)


def test_series_and_parallel():
    a = TransferFunction([1.0], [1.0, -0.5])
    b = TransferFunction([1.0, 1.0])

    series = a * b
    assert_allclose(series.numerator, [1.0, 1.0])
    assert_allclose(series.denominator, [1.0, -0.5])

    parallel = a + b
    assert_allclose(parallel.numerator, [2.0, 0.5, -0.5])
    assert_allclose(parallel.denominator, [1.0, -0.5])


def test_normalize():
    tf = TransferFunction([2.0, 4.0], [2.0, 1.0])
    tf.normalize()
    assert_allclose(tf.numerator, [1.0, 2.0])
    assert_allclose(tf.denominator, [1.0, 0.5])


def test_normalize_rejects_zero_leading_coefficient():
    with pytest.raises(ValueError):
        TransferFunction([1.0], [0.0, 1.0]).normalize()
