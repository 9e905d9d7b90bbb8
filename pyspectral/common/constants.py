"""
Global processing constants for the spectral engines.
These define the default transform geometry and the thresholds the
filtering dispatcher uses to pick a convolution strategy.
"""

DEFAULT_FFT_SIZE = 1024
DEFAULT_HOP_SIZE = 64
MIN_FFT_SIZE = 2
FILTER_SIZE_FOR_OPTIMIZED_PROCESSING = 64
BLOCK_FFT_SIZE_FACTOR = 4
