"""
Implements the real-input Fast Fourier Transform used by every spectral engine.
A real sequence of N samples is packed into N/2 complex values, transformed by an
in-place radix-2 decimation-in-time FFT and unpacked into the N/2 + 1 unique bins.
All tables and buffers are single precision and owned by the instance.
"""

import math
from enum import Enum
from typing import Optional, Tuple

import numpy as np

from pyspectral.common.errors import InvalidSizeError
from pyspectral.common.utils import is_power_of_two
from pyspectral.common.constants import MIN_FFT_SIZE


class SpectrumType(Enum):
    """Per-bin spectrum derivation computed from the forward transform."""

    MAGNITUDE = "magnitude"
    MAGNITUDE_NORMALIZED = "magnitude_normalized"
    POWER = "power"
    POWER_NORMALIZED = "power_normalized"


def bit_reversal_indices(n: int) -> np.ndarray:
    """
    Builds the bit-reversal permutation for an n-point radix-2 FFT.

    Args:
        n: Power-of-two number of complex points.

    Returns:
        Index array p such that x[p] is x in bit-reversed order.
    """
    bits = n.bit_length() - 1
    indices = np.zeros(n, dtype=np.intp)
    for i in range(n):
        rev = 0
        x = i
        for _ in range(bits):
            rev = (rev << 1) | (x & 1)
            x >>= 1
        indices[i] = rev
    return indices


class RealFft:
    """
    Forward/inverse DFT of real signals of power-of-two length N using only
    N/2-point complex butterflies.

    Instances are not safe for concurrent use: the scratch buffers are
    mutated by every call. Construct one instance per thread.
    """

    def __init__(self, size: int):
        """
        Precomputes twiddle and packing tables for transform size `size`.

        Args:
            size: Transform size N (power of two, >= 2).

        Raises:
            InvalidSizeError: If size is not a power of two >= 2.
        """
        if size < MIN_FFT_SIZE or not is_power_of_two(size):
            raise InvalidSizeError(f"Size of FFT must be a power of two >= {MIN_FFT_SIZE}, got {size}")

        self._size = size
        self._half = size // 2
        m = self._half

        # Half-size complex working buffers (packed even/odd samples)
        self._re = np.zeros(m, dtype=np.float32)
        self._im = np.zeros(m, dtype=np.float32)

        # Spectra used by the magnitude/power helpers
        self._real_spectrum = np.zeros(m + 1, dtype=np.float32)
        self._imag_spectrum = np.zeros(m + 1, dtype=np.float32)

        # Zero-padding buffer for short input frames
        self._frame = np.zeros(size, dtype=np.float32)

        # Twiddles W_m^k = exp(-2j*pi*k/m) for k < m/2; each stage strides into them
        k = np.arange(m // 2, dtype=np.float64)
        self._cos_tbl = np.cos(2.0 * math.pi * k / m).astype(np.float32)
        self._sin_tbl = np.sin(2.0 * math.pi * k / m).astype(np.float32)
        self._neg_sin_tbl = -self._sin_tbl

        self._bitrev = bit_reversal_indices(m)

        # Packing coefficients A_k = (1 - j*exp(-j*pi*k/m)) / 2, B_k = (1 + j*exp(-j*pi*k/m)) / 2
        f = math.pi / m
        i = np.arange(m, dtype=np.float64)
        self._ar = (0.5 * (1.0 - np.sin(f * i))).astype(np.float32)
        self._ai = (-0.5 * np.cos(f * i)).astype(np.float32)
        self._br = (0.5 * (1.0 + np.sin(f * i))).astype(np.float32)
        self._bi = (0.5 * np.cos(f * i)).astype(np.float32)

        # Z[(m - k) % m] for the unpacking step
        self._mirror = (m - np.arange(m)) % m

        self._inv_scale = np.float32(1.0 / m)

    @property
    def size(self) -> int:
        return self._size

    def _complex_fft(self, sin_tbl: np.ndarray) -> None:
        """
        In-place radix-2 DIT FFT over self._re/self._im.
        Passing the negated sine table gives the forward transform,
        the positive one gives the (unscaled) inverse.
        """
        m = self._half
        re = self._re
        im = self._im

        re[:] = re[self._bitrev]
        im[:] = im[self._bitrev]

        span = 2
        while span <= m:
            half = span // 2
            step = m // span
            wr = self._cos_tbl[::step]
            wi = sin_tbl[::step]

            blocks_re = re.reshape(-1, span)
            blocks_im = im.reshape(-1, span)
            even_re = blocks_re[:, :half]
            even_im = blocks_im[:, :half]
            odd_re = blocks_re[:, half:]
            odd_im = blocks_im[:, half:]

            t_re = odd_re * wr - odd_im * wi
            t_im = odd_re * wi + odd_im * wr

            np.subtract(even_re, t_re, out=odd_re)
            np.subtract(even_im, t_im, out=odd_im)
            even_re += t_re
            even_im += t_im

            span *= 2

    def forward(self, samples: np.ndarray,
                re: Optional[np.ndarray] = None,
                im: Optional[np.ndarray] = None) -> Tuple[np.ndarray, np.ndarray]:
        """
        Direct transform of N real samples.

        Args:
            samples: Up to N real samples (shorter frames are zero-padded).
            re: Optional output array for the N/2 + 1 real parts.
            im: Optional output array for the N/2 + 1 imaginary parts.

        Returns:
            (re, im), each of length N/2 + 1.
        """
        n = self._size
        m = self._half

        samples = np.asarray(samples, dtype=np.float32)
        if samples.shape[0] > n:
            raise ValueError(f"Frame of {samples.shape[0]} samples exceeds FFT size {n}")
        if samples.shape[0] < n:
            self._frame[:samples.shape[0]] = samples
            self._frame[samples.shape[0]:] = 0.0
            samples = self._frame

        if re is None:
            re = np.zeros(m + 1, dtype=np.float32)
        if im is None:
            im = np.zeros(m + 1, dtype=np.float32)

        # Pack even/odd samples as one half-size complex sequence
        self._re[:] = samples[0::2]
        self._im[:] = samples[1::2]

        self._complex_fft(self._neg_sin_tbl)

        zr = self._re
        zi = self._im
        zr_m = zr[self._mirror]
        zi_m = zi[self._mirror]
        z0_re = zr[0]
        z0_im = zi[0]

        # X[k] = Z[k] * A[k] + conj(Z[m - k]) * B[k]
        re[:m] = zr * self._ar - zi * self._ai + zr_m * self._br + zi_m * self._bi
        im[:m] = zi * self._ar + zr * self._ai + zr_m * self._bi - zi_m * self._br

        re[m] = z0_re - z0_im
        im[m] = 0.0

        return re, im

    def inverse(self, re: np.ndarray, im: np.ndarray,
                output: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Inverse transform: N/2 + 1 bins back to N real samples, scaled so that
        inverse(forward(x)) reproduces x. The imaginary parts of the DC and
        Nyquist bins are ignored.

        Args:
            re: N/2 + 1 real parts.
            im: N/2 + 1 imaginary parts.
            output: Optional output array of N samples (may alias `re` if it is N long).

        Returns:
            The N time-domain samples.
        """
        n = self._size
        m = self._half

        re = np.asarray(re, dtype=np.float32)
        im = np.asarray(im, dtype=np.float32)
        if re.shape[0] < m + 1 or im.shape[0] < m + 1:
            raise ValueError(f"Spectrum must hold {m + 1} bins for FFT size {n}")

        xr = re[:m + 1]
        xi = self._imag_spectrum
        xi[:] = im[:m + 1]
        xi[0] = 0.0
        xi[m] = 0.0

        xr_k = xr[:m]
        xi_k = xi[:m]
        xr_m = xr[m:0:-1]
        xi_m = xi[m:0:-1]

        # Z[k] = X[k] * conj(A[k]) + conj(X[m - k]) * conj(B[k])
        zr = xr_k * self._ar + xi_k * self._ai + xr_m * self._br - xi_m * self._bi
        zi = xi_k * self._ar - xr_k * self._ai - xr_m * self._bi - xi_m * self._br
        self._re[:] = zr
        self._im[:] = zi

        self._complex_fft(self._sin_tbl)

        if output is None:
            output = np.zeros(n, dtype=np.float32)

        np.multiply(self._re, self._inv_scale, out=output[0:n:2])
        np.multiply(self._im, self._inv_scale, out=output[1:n:2])

        return output

    def magnitude_spectrum(self, samples: np.ndarray,
                           spectrum: Optional[np.ndarray] = None,
                           normalize: bool = False) -> np.ndarray:
        """
        Magnitude spectrum sqrt(re^2 + im^2), optionally divided by N/2.
        """
        kind = SpectrumType.MAGNITUDE_NORMALIZED if normalize else SpectrumType.MAGNITUDE
        return self.spectrum(samples, kind, spectrum)

    def power_spectrum(self, samples: np.ndarray,
                       spectrum: Optional[np.ndarray] = None,
                       normalize: bool = True) -> np.ndarray:
        """
        Power spectrum re^2 + im^2, divided by N/2 by default.
        """
        kind = SpectrumType.POWER_NORMALIZED if normalize else SpectrumType.POWER
        return self.spectrum(samples, kind, spectrum)

    def spectrum(self, samples: np.ndarray, spectrum_type: SpectrumType,
                 spectrum: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Runs the forward transform and derives the requested per-bin spectrum.

        Args:
            samples: Up to N real samples.
            spectrum_type: Which derivation to compute.
            spectrum: Optional output array of N/2 + 1 values.

        Returns:
            The N/2 + 1 spectrum values.
        """
        m = self._half
        re, im = self.forward(samples, self._real_spectrum, self._imag_spectrum)

        if spectrum is None:
            spectrum = np.zeros(m + 1, dtype=np.float32)

        power = re * re + im * im

        if spectrum_type == SpectrumType.MAGNITUDE:
            np.sqrt(power, out=spectrum)
        elif spectrum_type == SpectrumType.MAGNITUDE_NORMALIZED:
            np.sqrt(power, out=spectrum)
            spectrum /= m
        elif spectrum_type == SpectrumType.POWER:
            spectrum[:] = power
        elif spectrum_type == SpectrumType.POWER_NORMALIZED:
            np.divide(power, m, out=spectrum)
        else:
            raise ValueError(f"Unknown spectrum type: {spectrum_type}")

        return spectrum


def fft_shift(samples: np.ndarray) -> np.ndarray:
    """
    Swaps the two halves of `samples` in place (zero frequency to the centre).

    Raises:
        ValueError: For odd-length input.
    """
    if samples.shape[0] % 2 == 1:
        raise ValueError("FFT shift is not supported for arrays with odd lengths")

    mid = samples.shape[0] // 2
    tmp = samples[:mid].copy()
    samples[:mid] = samples[mid:]
    samples[mid:] = tmp
    return samples
