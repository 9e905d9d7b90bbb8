"""
Implements streaming FIR filtering by frequency-domain block convolution.
Two strategies share one transform/kernel-spectrum owner: Overlap-Add (zero-padded
hops, saved tail summed into the next block) and Overlap-Save (sliding window,
aliased head discarded). Both are sample-synchronous with a latency of H - 1.
"""

from enum import Enum
from typing import TYPE_CHECKING

import numpy as np

from pyspectral.core.real_fft import RealFft
from pyspectral.common.errors import InvalidKernelSizeError, InvalidHopSizeError
from pyspectral.common.utils import next_power_of_two
from pyspectral.common.debug_logger import log_debug, log_debug_detailed

if TYPE_CHECKING:
    from pyspectral.core.fir_filter import FirFilter


class BlockConvolutionMethod(Enum):
    OVERLAP_ADD = "overlap_add"
    OVERLAP_SAVE = "overlap_save"


class FrequencyDomainKernel:
    """
    Owns the FFT, the cached kernel spectrum and the N-sized scratch buffers.
    Strategies load a block through block(), call convolve_block() and read
    the circular convolution result through output().
    """

    def __init__(self, kernel: np.ndarray, fft_size: int):
        """
        Args:
            kernel: FIR coefficients (length K >= 1).
            fft_size: Requested transform size; rounded up to a power of two.

        Raises:
            InvalidKernelSizeError: If the kernel is empty or K > fft size.
            InvalidSizeError: If the rounded size is below the minimum FFT size.
        """
        self.kernel = np.array(kernel, dtype=np.float32).ravel()
        self.kernel.flags.writeable = False

        self.fft_size = next_power_of_two(fft_size)

        if self.kernel.shape[0] == 0:
            raise InvalidKernelSizeError("Kernel must contain at least one coefficient")
        if self.kernel.shape[0] > self.fft_size:
            raise InvalidKernelSizeError(
                f"Kernel length {self.kernel.shape[0]} must not exceed the size of FFT {self.fft_size}"
            )

        self.fft = RealFft(self.fft_size)

        n_bins = self.fft_size // 2 + 1
        self._block = np.zeros(self.fft_size, dtype=np.float32)
        self._conv = np.zeros(self.fft_size, dtype=np.float32)
        self._block_re = np.zeros(n_bins, dtype=np.float32)
        self._block_im = np.zeros(n_bins, dtype=np.float32)
        self._conv_re = np.zeros(n_bins, dtype=np.float32)
        self._conv_im = np.zeros(n_bins, dtype=np.float32)

        # Kernel spectrum is derived once and never touched again
        self._kernel_re, self._kernel_im = self.fft.forward(self.kernel)
        self._kernel_re.flags.writeable = False
        self._kernel_im.flags.writeable = False

        log_debug_detailed("KERNEL_SPECTRUM_RE", "coeffs", self._kernel_re,
                           fft_size=self.fft_size, kernel_length=self.kernel.shape[0])

    def block(self) -> np.ndarray:
        """N-sample input scratch; filled by the strategy before convolve_block()."""
        return self._block

    def output(self) -> np.ndarray:
        """N-sample result of the last convolve_block() call."""
        return self._conv

    def convolve_block(self) -> np.ndarray:
        """
        Circular convolution of the block scratch with the kernel:
        forward FFT, bin-wise complex multiply, inverse FFT.
        """
        self.fft.forward(self._block, self._block_re, self._block_im)

        br = self._block_re
        bi = self._block_im
        kr = self._kernel_re
        ki = self._kernel_im
        np.subtract(br * kr, bi * ki, out=self._conv_re)
        np.add(br * ki, bi * kr, out=self._conv_im)

        return self.fft.inverse(self._conv_re, self._conv_im, self._conv)

    def clear(self) -> None:
        self._block.fill(0.0)
        self._conv.fill(0.0)
        self._block_re.fill(0.0)
        self._block_im.fill(0.0)
        self._conv_re.fill(0.0)
        self._conv_im.fill(0.0)


class BlockConvolver:
    """
    Sample-synchronous FIR filter based on FFT block convolution.

    Every hop of H = N - K + 1 input samples triggers one block computation;
    each process() call returns one sample of the most recently computed block,
    so the output lags the input by H - 1 samples.
    """

    def __init__(self, kernel: np.ndarray, fft_size: int,
                 method: BlockConvolutionMethod = BlockConvolutionMethod.OVERLAP_ADD):
        """
        Args:
            kernel: FIR coefficients.
            fft_size: Requested transform size (rounded up to a power of two).
            method: Block convolution strategy.

        Raises:
            InvalidKernelSizeError: If the kernel does not fit the transform.
            InvalidHopSizeError: If the resulting hop size is not positive.
        """
        self._spectral = FrequencyDomainKernel(kernel, fft_size)
        self._method = method

        n = self._spectral.fft_size
        k = self._spectral.kernel.shape[0]
        self._hop_size = n - k + 1
        if self._hop_size <= 0:
            raise InvalidHopSizeError(f"Hop size must be positive, got {self._hop_size}")

        self._overlap = k - 1
        self._input = np.zeros(self._hop_size, dtype=np.float32)
        self._output = np.zeros(self._hop_size, dtype=np.float32)
        # OLA: tail of the previous block; OLS: last K - 1 input samples
        self._saved = np.zeros(self._overlap, dtype=np.float32)

        self._input_offset = 0
        self._output_offset = 0
        self._frame_index = 0

    @classmethod
    def overlap_add(cls, kernel: np.ndarray, fft_size: int) -> "BlockConvolver":
        return cls(kernel, fft_size, BlockConvolutionMethod.OVERLAP_ADD)

    @classmethod
    def overlap_save(cls, kernel: np.ndarray, fft_size: int) -> "BlockConvolver":
        return cls(kernel, fft_size, BlockConvolutionMethod.OVERLAP_SAVE)

    @classmethod
    def from_filter(cls, fir_filter: "FirFilter", fft_size: int,
                    method: BlockConvolutionMethod = BlockConvolutionMethod.OVERLAP_ADD) -> "BlockConvolver":
        """Builds a block convolver running the kernel of a FirFilter."""
        return cls(fir_filter.kernel, next_power_of_two(fft_size), method)

    @property
    def kernel(self) -> np.ndarray:
        return self._spectral.kernel

    @property
    def method(self) -> BlockConvolutionMethod:
        return self._method

    @property
    def fft_size(self) -> int:
        return self._spectral.fft_size

    @property
    def hop_size(self) -> int:
        return self._hop_size

    @property
    def latency(self) -> int:
        return self._hop_size - 1

    def process(self, sample: float) -> float:
        """
        Online filtering (sample-by-sample).

        Buffers `sample`; once H samples are pending a block is computed.
        Returns the next sample of the most recently computed block.
        """
        self._input[self._input_offset] = sample
        self._input_offset += 1

        if self._input_offset == self._hop_size:
            self.process_frame()

        out = self._output[self._output_offset]
        self._output_offset += 1
        return float(out)

    def process_chunk(self, samples: np.ndarray) -> np.ndarray:
        """
        Online filtering of a run of samples; identical to calling process()
        once per sample.
        """
        samples = np.asarray(samples, dtype=np.float32)
        out = np.zeros(samples.shape[0], dtype=np.float32)

        pos = 0
        total = samples.shape[0]
        while pos < total:
            take = min(self._hop_size - self._input_offset, total - pos)
            self._input[self._input_offset:self._input_offset + take] = samples[pos:pos + take]
            self._input_offset += take

            if self._input_offset == self._hop_size:
                # all but the last sample are read from the previous block
                head = take - 1
                out[pos:pos + head] = self._output[self._output_offset:self._output_offset + head]
                self.process_frame()
                out[pos + head] = self._output[0]
                self._output_offset = 1
            else:
                out[pos:pos + take] = self._output[self._output_offset:self._output_offset + take]
                self._output_offset += take

            pos += take

        return out

    def process_frame(self) -> None:
        """Runs one block computation on the H pending input samples."""
        if self._method == BlockConvolutionMethod.OVERLAP_ADD:
            self._overlap_add_frame()
        elif self._method == BlockConvolutionMethod.OVERLAP_SAVE:
            self._overlap_save_frame()
        else:
            raise ValueError(f"Unknown block convolution method: {self._method}")

        log_debug("BLOCK_OUTPUT", "samples", self._output, frame=self._frame_index,
                  method=self._method.value, fft_size=self.fft_size, hop_size=self._hop_size)

        self._frame_index += 1
        self._input_offset = 0
        self._output_offset = 0

    def _overlap_add_frame(self) -> None:
        h = self._hop_size
        k1 = self._overlap

        block = self._spectral.block()
        block[:h] = self._input
        block[h:] = 0.0

        conv = self._spectral.convolve_block()

        conv[:k1] += self._saved
        self._saved[:] = conv[h:h + k1]
        self._output[:] = conv[:h]

    def _overlap_save_frame(self) -> None:
        h = self._hop_size
        k1 = self._overlap

        block = self._spectral.block()
        block[:k1] = self._saved
        block[k1:] = self._input
        self._saved[:] = block[h:]

        conv = self._spectral.convolve_block()

        # the first K - 1 samples are circularly aliased
        self._output[:] = conv[k1:]

    def apply_to(self, signal: np.ndarray) -> np.ndarray:
        """
        Offline filtering: streams the whole signal followed by K - 1 zeros and
        drops the first H - 1 (latency) outputs.

        Returns:
            len(signal) + K - 1 samples, matching direct-form convolution.
        """
        signal = np.asarray(signal, dtype=np.float32).ravel()
        k = self.kernel.shape[0]
        out_len = signal.shape[0] + k - 1

        stream = np.zeros(out_len + self.latency, dtype=np.float32)
        stream[:signal.shape[0]] = signal

        filtered = self.process_chunk(stream)
        return filtered[self.latency:]

    def reset(self) -> None:
        """Clears all buffers and tails; the instance can start a new stream."""
        self._input.fill(0.0)
        self._output.fill(0.0)
        self._saved.fill(0.0)
        self._spectral.clear()
        self._input_offset = 0
        self._output_offset = 0
        self._frame_index = 0


def ola_block_convolver(kernel: np.ndarray, fft_size: int) -> BlockConvolver:
    """Overlap-Add block convolver for `kernel` with transform size >= fft_size."""
    return BlockConvolver.overlap_add(kernel, fft_size)


def ols_block_convolver(kernel: np.ndarray, fft_size: int) -> BlockConvolver:
    """Overlap-Save block convolver for `kernel` with transform size >= fft_size."""
    return BlockConvolver.overlap_save(kernel, fft_size)
