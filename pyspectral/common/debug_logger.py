"""
Stage-oriented debug logging for pyspectral signal processing analysis.
Records every traced processing stage with source location, frame index and
data statistics so block/frame bookkeeping can be compared run to run.
"""

import time
import inspect
import numpy as np
from typing import Dict, List, Union, Any
import os


def _summarize(values: np.ndarray) -> Dict[str, float]:
    """Summary statistics of a flat float32 array (all zero for an empty one)."""
    if values.size == 0:
        return {"min": 0.0, "max": 0.0, "sum": 0.0, "mean": 0.0, "nonzero": 0}
    return {
        "min": float(values.min()),
        "max": float(values.max()),
        "sum": float(values.sum()),
        "mean": float(values.mean()),
        "nonzero": int(np.count_nonzero(values)),
    }


def _format_values(values: np.ndarray, edge: int = 5, precision: int = 6, marker: str = "...") -> str:
    """Comma separated values; long arrays keep `edge` values at each end."""
    fmt = f"{{:.{precision}f}}"
    if values.size <= 2 * edge:
        return ",".join(fmt.format(v) for v in values)
    head = ",".join(fmt.format(v) for v in values[:edge])
    tail = ",".join(fmt.format(v) for v in values[-edge:])
    return f"{head}{marker}{tail}"


def _caller_location():
    """(file, line, function) of the first frame outside this module."""
    caller = inspect.currentframe().f_back
    while caller.f_back is not None and caller.f_code.co_filename == __file__:
        caller = caller.f_back
    return os.path.basename(caller.f_code.co_filename), caller.f_lineno, caller.f_code.co_name


class SpectralDebugLogger:
    """
    Debug logger for spectral processing stages.
    Each entry carries the calling source location, the frame (block) index,
    a truncated dump of the values and their summary statistics.
    """

    def __init__(self, log_file: str = "pyspectral_debug.log", enabled: bool = False):
        self.log_file = log_file
        self.enabled = enabled
        if enabled:
            # truncate and write the header
            with open(log_file, 'w') as f:
                f.write(f"# pyspectral Debug Log - {time.strftime('%Y-%m-%d %H:%M:%S')}\n")
                f.write("# Format: [TIMESTAMP][PYSPEC][FILE:LINE][FUNC][FR{nnn}] STAGE: data_type=values "
                        "|META: ... |SRC: ...\n")
                f.write("#\n")

    def log_stage(self, stage: str, data_type: str, values: Union[List, np.ndarray, float, int],
                  frame: int = 0, **context) -> None:
        """
        Log a processing stage with metadata.

        Args:
            stage: Processing stage name (e.g., 'BLOCK_OUTPUT', 'VOCODER_OUTPUT')
            data_type: Kind of data being logged (e.g., 'samples', 'magnitudes')
            values: Scalar or array to record
            frame: Frame (block) index since the last reset
            **context: Additional context (fft_size, hop_size, method, etc.)
        """
        if not self.enabled:
            return

        filename, line_no, func_name = _caller_location()

        flat = np.atleast_1d(np.asarray(values, dtype=np.float32)).ravel()
        stats = _summarize(flat)

        if np.isscalar(values):
            shown = f"{float(values):.6f}"
        else:
            shown = f"[{_format_values(flat)}]"

        context_str = " ".join(f"{key}={value}" for key, value in context.items())
        micros = int(time.time() * 1e6) % 1000000
        timestamp = f"{time.strftime('%Y-%m-%dT%H:%M:%S')}.{micros:06d}"

        entry = (
            f"[{timestamp}][PYSPEC][{filename}:{line_no}][{func_name}][FR{frame:03d}] "
            f"{stage}: {data_type}={shown} "
            f"|META: size={flat.size} range=[{stats['min']:.6f},{stats['max']:.6f}] "
            f"sum={stats['sum']:.6f} mean={stats['mean']:.6f} nonzero={stats['nonzero']} "
            f"|SRC: {context_str}\n"
        )

        with open(self.log_file, 'a') as f:
            f.write(entry)

    def log_array_detailed(self, stage: str, data_type: str, values: Union[List, np.ndarray],
                           frame: int = 0, max_elements: int = 50, **context) -> None:
        """
        Log array data at full precision, e.g. a cached kernel spectrum.
        At most `max_elements` values are written out.
        """
        if not self.enabled:
            return

        flat = np.asarray(values, dtype=np.float32).ravel()
        detail = _format_values(flat, edge=max_elements // 2, precision=8, marker="...truncated...")
        self.log_stage(f"{stage}_DETAILED", data_type, flat, frame, detail=f"[{detail}]", **context)

    def enable(self):
        self.enabled = True

    def disable(self):
        self.enabled = False


# Module-wide logger; silent until enable_debug_logging() is called
debug_logger = SpectralDebugLogger()


def log_debug(stage: str, data_type: str, values: Any, **kwargs) -> None:
    """
    Records a stage on the module-wide logger.

    Usage:
        log_debug("BLOCK_OUTPUT", "samples", block,
                  frame=3, method="overlap_add", fft_size=256)
    """
    debug_logger.log_stage(stage, data_type, values, **kwargs)


def log_debug_detailed(stage: str, data_type: str, values: Any, **kwargs) -> None:
    debug_logger.log_array_detailed(stage, data_type, values, **kwargs)


def enable_debug_logging(log_file: str = "pyspectral_debug.log") -> None:
    """Starts a fresh log file and routes every engine's stages to it."""
    global debug_logger
    debug_logger = SpectralDebugLogger(log_file, enabled=True)


def disable_debug_logging() -> None:
    debug_logger.disable()
