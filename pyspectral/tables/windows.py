"""
Window coefficient tables for frame-based spectral processing.
These are the analysis/synthesis tapers applied before and after the
real-input FFT (the phase vocoder uses the periodic Hann window).
"""

import math
from enum import Enum

import numpy as np


class WindowType(Enum):
    RECTANGULAR = "rectangular"
    HANN = "hann"
    HAMMING = "hamming"
    SINE = "sine"


def generate_hann_window(length: int, periodic: bool = False) -> np.ndarray:
    """
    Generates a Hann window.
    Formula: w[i] = 0.5 - 0.5 * cos(2 * pi * i / D), where D = length for the
    periodic (DFT-even) variant and D = length - 1 for the symmetric one.
    """
    if length == 1:
        return np.ones(1, dtype=np.float32)
    denom = length if periodic else length - 1
    i = np.arange(length, dtype=np.float64)
    return (0.5 - 0.5 * np.cos(2.0 * math.pi * i / denom)).astype(np.float32)


def generate_hamming_window(length: int, periodic: bool = False) -> np.ndarray:
    """
    Generates a Hamming window: w[i] = 0.54 - 0.46 * cos(2 * pi * i / D).
    """
    if length == 1:
        return np.ones(1, dtype=np.float32)
    denom = length if periodic else length - 1
    i = np.arange(length, dtype=np.float64)
    return (0.54 - 0.46 * np.cos(2.0 * math.pi * i / denom)).astype(np.float32)


def generate_sine_window(length: int) -> np.ndarray:
    """
    Generates a sine window: w[i] = sin((i + 0.5) * pi / length).
    """
    i = np.arange(length, dtype=np.float64)
    return np.sin((i + 0.5) * (math.pi / length)).astype(np.float32)


def window_of_type(window_type: WindowType, length: int, periodic: bool = False) -> np.ndarray:
    """
    Returns `length` float32 coefficients of the requested window.

    Args:
        window_type: Kind of window.
        length: Number of coefficients (must be positive).
        periodic: Use the DFT-even variant for windows that have one.
    """
    if length <= 0:
        raise ValueError(f"Window length must be positive, got {length}")

    if window_type == WindowType.RECTANGULAR:
        return np.ones(length, dtype=np.float32)
    elif window_type == WindowType.HANN:
        return generate_hann_window(length, periodic)
    elif window_type == WindowType.HAMMING:
        return generate_hamming_window(length, periodic)
    elif window_type == WindowType.SINE:
        return generate_sine_window(length)
    else:
        raise ValueError(f"Unknown window type: {window_type}")
