"""
Polynomial algebra for combining filters: series and parallel composition of
rational transfer functions H(z) = B(z) / A(z). Kept in double precision; the
streaming engines only ever receive the resulting FIR kernels.
"""

from typing import Optional, Sequence

import numpy as np


def poly_convolve(a: Sequence[float], b: Sequence[float]) -> np.ndarray:
    """
    Multiplies two polynomials given by their coefficient sequences.

    Args:
        a: Coefficients of the first polynomial (highest power of z^-1 last).
        b: Coefficients of the second polynomial.

    Returns:
        len(a) + len(b) - 1 coefficients of the product.
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.size == 0 or b.size == 0:
        return np.zeros(0, dtype=np.float64)

    result = np.zeros(a.size + b.size - 1, dtype=np.float64)
    for i, coeff in enumerate(a):
        result[i:i + b.size] += coeff * b
    return result


def poly_add(a: Sequence[float], b: Sequence[float]) -> np.ndarray:
    """
    Adds two polynomials, padding the shorter one with trailing zeros.
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    result = np.zeros(max(a.size, b.size), dtype=np.float64)
    result[:a.size] += a
    result[:b.size] += b
    return result


class TransferFunction:
    """
    Rational transfer function with numerator b and denominator a.
    `tf1 * tf2` is the series connection, `tf1 + tf2` the parallel one.
    """

    def __init__(self, numerator: Sequence[float], denominator: Optional[Sequence[float]] = None):
        self.numerator = np.array(numerator, dtype=np.float64)
        self.denominator = np.array(denominator if denominator is not None else [1.0], dtype=np.float64)

    def __mul__(self, other: "TransferFunction") -> "TransferFunction":
        num = poly_convolve(self.numerator, other.numerator)
        den = poly_convolve(self.denominator, other.denominator)
        return TransferFunction(num, den)

    def __add__(self, other: "TransferFunction") -> "TransferFunction":
        num = poly_add(poly_convolve(self.numerator, other.denominator),
                       poly_convolve(other.numerator, self.denominator))
        den = poly_convolve(self.denominator, other.denominator)
        return TransferFunction(num, den)

    def normalize(self) -> None:
        """
        Divides all coefficients by a[0].

        Raises:
            ValueError: If a[0] is (close to) zero.
        """
        a0 = self.denominator[0]
        if abs(a0) < 1e-10:
            raise ValueError("The first denominator coefficient can not be zero!")
        self.numerator /= a0
        self.denominator /= a0

    def impulse_response(self, length: int = 512) -> np.ndarray:
        """
        First `length` samples of the impulse response (difference equation
        run on a unit impulse, assuming a[0] == 1).
        """
        b = self.numerator
        a = self.denominator

        if a.size == 1:
            # FIR: the kernel itself, zero-padded (never truncated)
            response = np.zeros(max(length, b.size), dtype=np.float64)
            response[:b.size] = b
            return response

        response = np.zeros(length, dtype=np.float64)
        for n in range(length):
            if n < b.size:
                response[n] = b[n]
            for m in range(1, min(a.size, n + 1)):
                response[n] -= a[m] * response[n - m]
        return response

    def frequency_response(self, length: int = 512) -> np.ndarray:
        """
        Complex frequency response at length // 2 + 1 bins, computed from the
        impulse response with the double-precision numpy FFT.
        """
        return np.fft.rfft(self.impulse_response(length)[:length], n=length)
