"""
Construction-time errors raised by the spectral engines.
"""


class SpectralError(ValueError):
    """Base class for invalid engine configurations."""

    pass


class InvalidSizeError(SpectralError):
    """Transform size is not a power of two >= 2."""

    pass


class InvalidKernelSizeError(SpectralError):
    """Kernel is empty or longer than the transform size."""

    pass


class InvalidHopSizeError(SpectralError):
    """Hop size is not in the range (0, fft_size)."""

    pass


class InvalidShiftError(SpectralError):
    """Pitch shift ratio is not a finite positive number."""

    pass
