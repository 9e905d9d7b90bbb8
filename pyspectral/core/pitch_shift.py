"""
Phase-vocoder pitch shifting: analysis (Hann window + real FFT), per-bin phase
unwrapping, spectral stretch by the shift ratio, synthesis-phase accumulation,
inverse FFT and windowed overlap-add, then a wet/dry mix.
"""

import math

import numpy as np

from pyspectral.core.real_fft import RealFft
from pyspectral.tables.windows import WindowType, window_of_type
from pyspectral.common.constants import DEFAULT_FFT_SIZE, DEFAULT_HOP_SIZE
from pyspectral.common.errors import InvalidHopSizeError, InvalidShiftError
from pyspectral.common.utils import wrap_phase
from pyspectral.common.debug_logger import log_debug


class PitchShiftVocoder:
    """
    Streaming pitch shifter.

    process() feeds one sample into the analysis delay line and returns one
    output sample; a frame of N samples is analysed and resynthesised every
    H samples. Output sample n corresponds to input sample n - (N - 1).
    """

    def __init__(self, shift: float, fft_size: int = DEFAULT_FFT_SIZE, hop_size: int = DEFAULT_HOP_SIZE,
                 wet: float = 1.0, dry: float = 0.0):
        """
        Args:
            shift: Pitch shift ratio (2.0 = one octave up).
            fft_size: Frame / transform size N (power of two).
            hop_size: Samples between consecutive frames, 0 < H < N.
            wet: Gain of the pitch-shifted signal.
            dry: Gain of the time-aligned original signal.

        Raises:
            InvalidSizeError: If fft_size is not a power of two >= 2.
            InvalidHopSizeError: If hop_size is outside (0, fft_size).
            InvalidShiftError: If shift is not a finite positive number.
        """
        if not math.isfinite(shift) or shift <= 0:
            raise InvalidShiftError(f"Pitch shift must be a finite positive ratio, got {shift}")
        if hop_size <= 0 or hop_size >= fft_size:
            raise InvalidHopSizeError(f"Hop size must be in (0, {fft_size}), got {hop_size}")

        self._fft = RealFft(fft_size)

        self._shift = float(shift)
        self._fft_size = fft_size
        self._hop_size = hop_size
        self._overlap_size = fft_size - hop_size
        self.wet = wet
        self.dry = dry

        self._window = window_of_type(WindowType.HANN, fft_size, periodic=True)

        # Overlap-add of the squared window sums to sum(w^2) / H per sample
        self._gain = np.float32(hop_size / float(np.sum(self._window.astype(np.float64) ** 2)))

        n_bins = fft_size // 2 + 1
        advance = 2.0 * math.pi * hop_size / fft_size
        # expected per-hop phase advance of each bin, unshifted and shifted, reduced mod 2*pi
        self._expected = np.mod(np.arange(n_bins) * advance, 2.0 * math.pi).astype(np.float32)
        self._expected_shifted = np.mod(np.arange(n_bins) * advance * self._shift, 2.0 * math.pi).astype(np.float32)

        # Source bin j feeds destination round(j * shift); targets past Nyquist are dropped
        dest = np.floor(np.arange(n_bins) * self._shift + 0.5).astype(np.intp)
        self._src_bins = np.nonzero(dest < n_bins)[0]
        self._dest_bins = dest[self._src_bins]
        # the last (highest) source wins the frequency of a shared destination
        rev_unique, rev_index = np.unique(self._dest_bins[::-1], return_index=True)
        self._freq_dest = rev_unique
        self._freq_src = self._src_bins[::-1][rev_index]

        self._dl = np.zeros(fft_size, dtype=np.float32)
        self._frame = np.zeros(fft_size, dtype=np.float32)
        self._synth = np.zeros(fft_size, dtype=np.float32)
        self._output = np.zeros(fft_size, dtype=np.float32)
        self._last_saved = np.zeros(self._overlap_size, dtype=np.float32)

        self._re = np.zeros(n_bins, dtype=np.float32)
        self._im = np.zeros(n_bins, dtype=np.float32)
        self._mag = np.zeros(n_bins, dtype=np.float32)
        self._phase = np.zeros(n_bins, dtype=np.float32)
        self._prev_phase = np.zeros(n_bins, dtype=np.float32)
        self._deviation = np.zeros(n_bins, dtype=np.float32)
        self._stretch_mag = np.zeros(n_bins, dtype=np.float32)
        self._stretch_advance = np.zeros(n_bins, dtype=np.float32)
        self._phase_total = np.zeros(n_bins, dtype=np.float32)
        self._synth_re = np.zeros(n_bins, dtype=np.float32)
        self._synth_im = np.zeros(n_bins, dtype=np.float32)

        self._in_offset = self._overlap_size
        self._out_offset = 0
        self._frame_index = 0

    @property
    def shift(self) -> float:
        return self._shift

    @property
    def fft_size(self) -> int:
        return self._fft_size

    @property
    def hop_size(self) -> int:
        return self._hop_size

    @property
    def latency(self) -> int:
        return self._fft_size - 1

    @property
    def stretched_magnitudes(self) -> np.ndarray:
        """Read-only view of the magnitudes resynthesised in the last frame."""
        view = self._stretch_mag.view()
        view.flags.writeable = False
        return view

    def process_frame(self) -> None:
        """Analyses and resynthesises the N samples held in the delay line."""
        n = self._fft_size
        h = self._hop_size
        overlap = self._overlap_size

        # analysis
        np.multiply(self._dl, self._window, out=self._frame)
        re, im = self._fft.forward(self._frame, self._re, self._im)

        np.hypot(re, im, out=self._mag)
        np.arctan2(im, re, out=self._phase)

        # phase unwrapping: deviation from the expected advance of each bin
        delta = self._phase - self._prev_phase
        self._prev_phase[:] = self._phase
        self._deviation[:] = wrap_phase(delta - self._expected)

        # spectral stretch
        self._stretch_mag.fill(0.0)
        self._stretch_advance.fill(0.0)
        np.add.at(self._stretch_mag, self._dest_bins, self._mag[self._src_bins])

        # synthesis phase accumulation: shift * (expected advance + deviation) of the source bin
        src = self._freq_src
        self._stretch_advance[self._freq_dest] = (self._expected_shifted[src]
                                                  + np.float32(self._shift) * self._deviation[src])
        self._phase_total += self._stretch_advance
        self._phase_total[:] = wrap_phase(self._phase_total)

        np.multiply(self._stretch_mag, np.cos(self._phase_total), out=self._synth_re)
        np.multiply(self._stretch_mag, np.sin(self._phase_total), out=self._synth_im)

        log_debug("VOCODER_STRETCHED_MAGNITUDE", "magnitudes", self._stretch_mag,
                  frame=self._frame_index, shift=self._shift, fft_size=n, hop_size=h)

        # resynthesis with windowed overlap-add
        self._fft.inverse(self._synth_re, self._synth_im, self._synth)
        self._synth *= self._window

        self._synth[:overlap] += self._last_saved
        self._last_saved[:] = self._synth[h:]

        # wet / dry mix
        np.multiply(self._synth, np.float32(self.wet) * self._gain, out=self._output)
        self._output += self._dl * np.float32(self.dry)

        log_debug("VOCODER_OUTPUT", "samples", self._output[:h],
                  frame=self._frame_index, shift=self._shift, fft_size=n, hop_size=h)

        self._dl[:overlap] = self._dl[h:]

        self._in_offset = overlap
        self._out_offset = 0
        self._frame_index += 1

    def process(self, sample: float) -> float:
        """
        Online processing (sample-by-sample).
        """
        self._dl[self._in_offset] = sample
        self._in_offset += 1

        if self._in_offset == self._fft_size:
            self.process_frame()

        out = self._output[self._out_offset]
        self._out_offset += 1
        return float(out)

    def process_chunk(self, samples: np.ndarray) -> np.ndarray:
        """
        Online processing of a run of samples; identical to calling process()
        once per sample.
        """
        samples = np.asarray(samples, dtype=np.float32)
        out = np.zeros(samples.shape[0], dtype=np.float32)

        pos = 0
        total = samples.shape[0]
        while pos < total:
            take = min(self._fft_size - self._in_offset, total - pos)
            self._dl[self._in_offset:self._in_offset + take] = samples[pos:pos + take]
            self._in_offset += take

            if self._in_offset == self._fft_size:
                head = take - 1
                out[pos:pos + head] = self._output[self._out_offset:self._out_offset + head]
                self.process_frame()
                out[pos + head] = self._output[0]
                self._out_offset = 1
            else:
                out[pos:pos + take] = self._output[self._out_offset:self._out_offset + take]
                self._out_offset += take

            pos += take

        return out

    def apply_to(self, signal: np.ndarray) -> np.ndarray:
        """
        Processes a whole signal and returns the same number of samples
        (the first N - 1 are the stream latency).
        """
        return self.process_chunk(np.asarray(signal, dtype=np.float32).ravel())

    def reset(self) -> None:
        """Starts a new stream session with no memory of the previous one."""
        self._dl.fill(0.0)
        self._frame.fill(0.0)
        self._synth.fill(0.0)
        self._output.fill(0.0)
        self._last_saved.fill(0.0)
        self._re.fill(0.0)
        self._im.fill(0.0)
        self._mag.fill(0.0)
        self._phase.fill(0.0)
        self._prev_phase.fill(0.0)
        self._deviation.fill(0.0)
        self._stretch_mag.fill(0.0)
        self._stretch_advance.fill(0.0)
        self._phase_total.fill(0.0)
        self._synth_re.fill(0.0)
        self._synth_im.fill(0.0)

        self._in_offset = self._overlap_size
        self._out_offset = 0
        self._frame_index = 0
