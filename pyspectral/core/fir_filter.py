"""
Direct-form FIR filter and the filtering dispatcher that chooses between
direct-form, Overlap-Add and Overlap-Save processing for a whole signal.
"""

from enum import Enum
from typing import Sequence

import numpy as np

from pyspectral.core.block_convolver import BlockConvolver, BlockConvolutionMethod
from pyspectral.core.transfer_function import TransferFunction
from pyspectral.common.constants import FILTER_SIZE_FOR_OPTIMIZED_PROCESSING, BLOCK_FFT_SIZE_FACTOR
from pyspectral.common.errors import InvalidKernelSizeError
from pyspectral.common.utils import next_power_of_two


class FilteringMethod(Enum):
    AUTO = "auto"
    DIRECT = "direct"
    OVERLAP_ADD = "overlap_add"
    OVERLAP_SAVE = "overlap_save"


class FirFilter:
    """
    Finite impulse response filter.

    Kernel coefficients are stored as float32 and used for filtering; the
    transfer function (double precision) is created on demand for design work.
    """

    def __init__(self, kernel: Sequence[float]):
        self._kernel = np.array(kernel, dtype=np.float32).ravel()
        if self._kernel.shape[0] == 0:
            raise InvalidKernelSizeError("Kernel must contain at least one coefficient")
        self._kernel.flags.writeable = False

        self._delay_line = np.zeros(self._kernel.shape[0], dtype=np.float32)
        self._delay_line_offset = self._kernel.shape[0] - 1

    @property
    def kernel(self) -> np.ndarray:
        return self._kernel

    @property
    def tf(self) -> TransferFunction:
        return TransferFunction(self._kernel.astype(np.float64), [1.0])

    def apply_to(self, signal: np.ndarray, method: FilteringMethod = FilteringMethod.AUTO) -> np.ndarray:
        """
        Filters an entire signal (offline).

        Args:
            signal: Input samples.
            method: AUTO picks Overlap-Add for kernels of 64+ taps and
                direct form otherwise.

        Returns:
            len(signal) + K - 1 filtered samples.
        """
        if method == FilteringMethod.AUTO:
            if self._kernel.shape[0] >= FILTER_SIZE_FOR_OPTIMIZED_PROCESSING:
                method = FilteringMethod.OVERLAP_ADD
            else:
                method = FilteringMethod.DIRECT

        if method == FilteringMethod.OVERLAP_ADD:
            fft_size = next_power_of_two(BLOCK_FFT_SIZE_FACTOR * self._kernel.shape[0])
            return BlockConvolver.from_filter(self, fft_size, BlockConvolutionMethod.OVERLAP_ADD).apply_to(signal)
        elif method == FilteringMethod.OVERLAP_SAVE:
            fft_size = next_power_of_two(BLOCK_FFT_SIZE_FACTOR * self._kernel.shape[0])
            return BlockConvolver.from_filter(self, fft_size, BlockConvolutionMethod.OVERLAP_SAVE).apply_to(signal)
        elif method == FilteringMethod.DIRECT:
            return self.apply_filter_directly(signal)
        else:
            raise ValueError(f"Unknown filtering method: {method}")

    def process(self, sample: float) -> float:
        """
        Online filtering (sample-by-sample) over a circular delay line.
        """
        k = self._kernel.shape[0]
        offset = self._delay_line_offset

        self._delay_line[offset] = sample

        # newest sample sits at `offset`, older ones follow (wrapping around)
        output = np.dot(self._kernel[:k - offset], self._delay_line[offset:])
        output += np.dot(self._kernel[k - offset:], self._delay_line[:offset])

        self._delay_line_offset -= 1
        if self._delay_line_offset < 0:
            self._delay_line_offset = k - 1

        return float(output)

    def apply_filter_directly(self, signal: np.ndarray) -> np.ndarray:
        """
        The difference equation y[n] = sum_k h[k] * x[n - k], coded as it is.
        """
        x = np.asarray(signal, dtype=np.float32).ravel()
        k = self._kernel.shape[0]

        output = np.zeros(x.shape[0] + k - 1, dtype=np.float32)
        for i in range(k):
            output[i:i + x.shape[0]] += self._kernel[i] * x

        return output

    def reset(self) -> None:
        self._delay_line.fill(0.0)
        self._delay_line_offset = self._delay_line.shape[0] - 1

    def __mul__(self, other: "FirFilter") -> "FirFilter":
        """Series combination of two FIR filters (also an FIR filter)."""
        tf = self.tf * other.tf
        return FirFilter(tf.numerator)

    def __add__(self, other: "FirFilter") -> "FirFilter":
        """Parallel combination of two FIR filters."""
        tf = self.tf + other.tf
        return FirFilter(tf.numerator)
