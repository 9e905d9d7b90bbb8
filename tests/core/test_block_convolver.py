import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from pyspectral.core.block_convolver import (
    BlockConvolutionMethod,
    BlockConvolver,
    FrequencyDomainKernel,
    ola_block_convolver,
    ols_block_convolver,
)
from pyspectral.core.fir_filter import FirFilter, FilteringMethod
from pyspectral.common.errors import InvalidKernelSizeError


METHODS = [BlockConvolutionMethod.OVERLAP_ADD, BlockConvolutionMethod.OVERLAP_SAVE]


@pytest.fixture
def rng():
    return np.random.default_rng(2024)


@pytest.mark.parametrize("method", METHODS)
def test_small_known_convolution(method):
    convolver = BlockConvolver(np.array([1.0, 0.0, -1.0]), 4, method)
    assert convolver.hop_size == 2
    out = convolver.apply_to(np.array([1.0, 2.0, 3.0, 4.0, 5.0]))
    assert_allclose(out, [1.0, 2.0, 2.0, 2.0, 2.0, -4.0, -5.0], atol=1e-5)


@pytest.mark.parametrize("method", METHODS)
@pytest.mark.parametrize("kernel_length", [1, 2, 7, 64, 257])
def test_matches_direct_convolution(method, kernel_length, rng):
    kernel = (rng.standard_normal(kernel_length) / np.sqrt(kernel_length)).astype(np.float32)
    signal = rng.standard_normal(1000).astype(np.float32)
    fft_size = max(4, 4 * kernel_length)

    out = BlockConvolver(kernel, fft_size, method).apply_to(signal)
    direct = FirFilter(kernel).apply_to(signal, FilteringMethod.DIRECT)
    ref = np.convolve(signal.astype(np.float64), kernel.astype(np.float64))

    assert out.shape == direct.shape == ref.shape
    assert_allclose(out, direct, atol=1e-4)
    assert_allclose(direct, ref, atol=1e-4)


@pytest.mark.parametrize("method", METHODS)
def test_kernel_as_long_as_fft(method, rng):
    kernel = rng.standard_normal(8).astype(np.float32)
    signal = rng.standard_normal(50).astype(np.float32)
    convolver = BlockConvolver(kernel, 8, method)
    assert convolver.hop_size == 1
    assert convolver.latency == 0
    assert_allclose(convolver.apply_to(signal), np.convolve(signal, kernel), atol=1e-4)


@pytest.mark.parametrize("method", METHODS)
@pytest.mark.parametrize("signal_length", [0, 1, 3, 17, 100])
def test_output_length(method, signal_length, rng):
    kernel = rng.standard_normal(5).astype(np.float32)
    signal = rng.standard_normal(signal_length).astype(np.float32)
    out = BlockConvolver(kernel, 16, method).apply_to(signal)
    assert out.shape == (signal_length + 4,)
    if signal_length:
        assert_allclose(out, np.convolve(signal, kernel), atol=1e-4)
    else:
        assert np.all(out == 0.0)


@pytest.mark.parametrize("method", METHODS)
def test_streaming_latency(method, rng):
    kernel = rng.standard_normal(9).astype(np.float32)
    signal = rng.standard_normal(300).astype(np.float32)
    convolver = BlockConvolver(kernel, 32, method)
    assert convolver.hop_size == 24
    assert convolver.latency == 23

    streamed = np.array([convolver.process(s) for s in signal], dtype=np.float32)
    ref = np.convolve(signal, kernel)[:signal.shape[0]]

    assert np.all(streamed[:convolver.latency] == 0.0)
    assert_allclose(streamed[convolver.latency:], ref[:signal.shape[0] - convolver.latency], atol=1e-4)


@pytest.mark.parametrize("method", METHODS)
def test_process_chunk_matches_process(method, rng):
    kernel = rng.standard_normal(6).astype(np.float32)
    signal = rng.standard_normal(257).astype(np.float32)

    per_sample = BlockConvolver(kernel, 16, method)
    expected = np.array([per_sample.process(s) for s in signal], dtype=np.float32)

    chunked = BlockConvolver(kernel, 16, method)
    pieces = []
    pos = 0
    for size in [1, 10, 11, 0, 33, 100, 102]:
        pieces.append(chunked.process_chunk(signal[pos:pos + size]))
        pos += size
    assert pos == signal.shape[0]

    assert_array_equal(np.concatenate(pieces), expected)


@pytest.mark.parametrize("method", METHODS)
def test_reset_restores_initial_state(method, rng):
    kernel = rng.standard_normal(4).astype(np.float32)
    signal = rng.standard_normal(64).astype(np.float32)
    convolver = BlockConvolver(kernel, 16, method)

    first = convolver.apply_to(signal)
    convolver.process_chunk(rng.standard_normal(7).astype(np.float32))
    convolver.reset()
    convolver.reset()
    second = convolver.apply_to(signal)

    assert_array_equal(first, second)


def test_fft_size_rounds_up():
    convolver = BlockConvolver(np.ones(10), 100)
    assert convolver.fft_size == 128
    assert convolver.hop_size == 119


def test_kernel_longer_than_fft_rejected():
    with pytest.raises(InvalidKernelSizeError):
        BlockConvolver(np.ones(20), 16)


def test_empty_kernel_rejected():
    with pytest.raises(InvalidKernelSizeError):
        BlockConvolver(np.zeros(0), 16, BlockConvolutionMethod.OVERLAP_SAVE)


def test_kernel_is_copied_and_read_only():
    kernel = np.array([1.0, 2.0, 3.0], dtype=np.float32)
    convolver = BlockConvolver(kernel, 8)
    kernel[0] = 100.0
    assert convolver.kernel[0] == 1.0
    with pytest.raises(ValueError):
        convolver.kernel[0] = 5.0


def test_frequency_domain_kernel_circular_convolution():
    spectral = FrequencyDomainKernel(np.array([0.0, 1.0]), 4)
    block = spectral.block()
    block[:] = [1.0, 2.0, 3.0, 4.0]
    # delay by one sample, wrapping around
    assert_allclose(spectral.convolve_block(), [4.0, 1.0, 2.0, 3.0], atol=1e-6)
    assert spectral.output() is spectral.convolve_block()


def test_factories_and_methods(rng):
    kernel = rng.standard_normal(5).astype(np.float32)
    assert BlockConvolver.overlap_add(kernel, 16).method == BlockConvolutionMethod.OVERLAP_ADD
    assert BlockConvolver.overlap_save(kernel, 16).method == BlockConvolutionMethod.OVERLAP_SAVE
    assert ola_block_convolver(kernel, 16).method == BlockConvolutionMethod.OVERLAP_ADD
    assert ols_block_convolver(kernel, 16).method == BlockConvolutionMethod.OVERLAP_SAVE


def test_from_filter_uses_filter_kernel(rng):
    kernel = rng.standard_normal(12).astype(np.float32)
    fir_filter = FirFilter(kernel)
    convolver = BlockConvolver.from_filter(fir_filter, 60, BlockConvolutionMethod.OVERLAP_SAVE)
    assert convolver.fft_size == 64
    assert_array_equal(convolver.kernel, kernel)
    assert convolver.method == BlockConvolutionMethod.OVERLAP_SAVE


def test_from_filter_is_annotated_with_fir_filter():
    assert BlockConvolver.from_filter.__annotations__["fir_filter"] == "FirFilter"
