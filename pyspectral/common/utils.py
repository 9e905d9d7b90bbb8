import math

import numpy as np

"""
Common utility functions for the pyspectral project.
"""


def is_power_of_two(n: int) -> bool:
    """
    Checks whether n is a positive power of two.

    Args:
        n: The integer to check.

    Returns:
        True for 1, 2, 4, 8, ...; False otherwise.
    """
    return n > 0 and (n & (n - 1)) == 0


def next_power_of_two(n: int) -> int:
    """
    Returns the smallest power of two that is >= n (1 for n <= 1).
    """
    if n <= 1:
        return 1
    return 1 << (int(n) - 1).bit_length()


def wrap_phase(phase: np.ndarray) -> np.ndarray:
    """
    Wraps phase values into the half-open interval (-pi, pi].

    The reduction is done in double precision so that repeated wrapping of an
    accumulating single-precision phase does not drift by float32(2*pi) errors.

    Args:
        phase: Array of phases in radians.

    Returns:
        A new array of the input dtype with every value in (-pi, pi].
    """
    phase = np.asarray(phase)
    wrapped = math.pi - np.mod(math.pi - phase.astype(np.float64), 2.0 * math.pi)
    return wrapped.astype(phase.dtype)
