import argparse
import wave
import numpy as np
import os

from pyspectral.core.fir_filter import FirFilter, FilteringMethod
from pyspectral.core.pitch_shift import PitchShiftVocoder
from pyspectral.common.constants import DEFAULT_FFT_SIZE, DEFAULT_HOP_SIZE
from pyspectral.common.errors import SpectralError
from pyspectral.common.debug_logger import enable_debug_logging

METHOD_CHOICES = {
    "auto": FilteringMethod.AUTO,
    "direct": FilteringMethod.DIRECT,
    "overlap-add": FilteringMethod.OVERLAP_ADD,
    "overlap-save": FilteringMethod.OVERLAP_SAVE,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Spectral processing CLI tool (FIR filtering and pitch shifting)")
    parser.add_argument(
        "-i",
        "--input",
        type=str,
        required=True,
        help="Path to the input .wav file (8-bit or 16-bit PCM, mono or stereo)",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        required=True,
        help="Path to the output .wav file (16-bit PCM)",
    )
    parser.add_argument(
        "-m",
        "--mode",
        type=str,
        choices=["filter", "pitch-shift"],
        required=True,
        help="Operation mode: 'filter' to apply a FIR kernel, 'pitch-shift' to run the phase vocoder",
    )
    parser.add_argument(
        "--kernel",
        type=str,
        help="Text file with FIR kernel coefficients (whitespace separated, required for 'filter' mode)",
    )
    parser.add_argument(
        "--method",
        type=str,
        choices=sorted(METHOD_CHOICES),
        default="auto",
        help="Filtering method for 'filter' mode (default: auto)",
    )
    parser.add_argument(
        "--shift",
        type=float,
        default=1.0,
        help="Pitch shift ratio for 'pitch-shift' mode (2.0 = one octave up, default: 1.0)",
    )
    parser.add_argument(
        "--fft-size",
        type=int,
        default=DEFAULT_FFT_SIZE,
        help=f"Vocoder frame size, a power of two (default: {DEFAULT_FFT_SIZE})",
    )
    parser.add_argument(
        "--hop-size",
        type=int,
        default=DEFAULT_HOP_SIZE,
        help=f"Vocoder hop size (default: {DEFAULT_HOP_SIZE})",
    )
    parser.add_argument("--wet", type=float, default=1.0, help="Vocoder wet gain (default: 1.0)")
    parser.add_argument("--dry", type=float, default=0.0, help="Vocoder dry gain (default: 0.0)")
    parser.add_argument(
        "--debug-log",
        type=str,
        help="Enable debug logging to specified file (e.g., --debug-log pyspectral_debug.log)",
    )
    return parser


def read_wav(path: str):
    """
    Reads a PCM WAV file into per-channel float32 arrays in [-1, 1).

    Returns:
        (channels, frame_rate)
    """
    with wave.open(path, "rb") as wav_in:
        n_channels = wav_in.getnchannels()
        samp_width = wav_in.getsampwidth()
        frame_rate = wav_in.getframerate()
        n_frames = wav_in.getnframes()

        if n_channels not in [1, 2]:
            raise ValueError(f"Input WAV has {n_channels} channels, only 1 or 2 are supported.")

        audio_bytes = wav_in.readframes(n_frames)

    if samp_width == 2:  # 16-bit signed PCM
        interleaved = np.frombuffer(audio_bytes, dtype=np.int16).astype(np.float32) / 32768.0
    elif samp_width == 1:  # 8-bit unsigned PCM
        interleaved = (np.frombuffer(audio_bytes, dtype=np.uint8).astype(np.float32) - 128.0) / 128.0
    else:
        raise ValueError(
            f"Input WAV has sample width {samp_width} bytes; 16-bit or 8-bit PCM is required."
        )

    channels = [interleaved[ch::n_channels] for ch in range(n_channels)]
    return channels, frame_rate


def write_wav(path: str, channels, frame_rate: int) -> None:
    """Writes per-channel float samples as 16-bit PCM, truncating to the shortest channel."""
    min_len = min(len(ch) for ch in channels)
    interleaved = np.empty(min_len * len(channels), dtype=np.float32)
    for idx, ch in enumerate(channels):
        interleaved[idx::len(channels)] = ch[:min_len]

    pcm = np.clip(interleaved * (2**15 - 1), -(2**15), (2**15 - 1)).astype(np.int16)

    with wave.open(path, "wb") as wav_out:
        wav_out.setnchannels(len(channels))
        wav_out.setsampwidth(2)  # 16-bit PCM
        wav_out.setframerate(frame_rate)
        wav_out.writeframes(pcm.tobytes())


def run_filter(channels, kernel_path: str, method: FilteringMethod):
    kernel = np.atleast_1d(np.loadtxt(kernel_path, dtype=np.float64))
    fir_filter = FirFilter(kernel)
    print(f"Kernel: {len(kernel)} taps from '{kernel_path}', method: {method.value}")
    return [fir_filter.apply_to(ch, method) for ch in channels]


def run_pitch_shift(channels, shift: float, fft_size: int, hop_size: int, wet: float, dry: float):
    processed = []
    for ch in channels:
        # one engine per channel: vocoder state is per-stream
        vocoder = PitchShiftVocoder(shift, fft_size=fft_size, hop_size=hop_size, wet=wet, dry=dry)
        # flush the latency with trailing silence, then drop it from the front
        padded = np.concatenate([ch, np.zeros(vocoder.latency, dtype=np.float32)])
        processed.append(vocoder.apply_to(padded)[vocoder.latency:])
    print(f"Pitch shift: ratio {shift}, fft size {fft_size}, hop size {hop_size}")
    return processed


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Enable debug logging if requested
    if args.debug_log:
        enable_debug_logging(args.debug_log)
        print(f"Debug logging enabled to: {args.debug_log}")

    if not os.path.exists(args.input):
        print(f"Error: input file '{args.input}' does not exist.")
        return 1

    if args.mode == "filter" and not args.kernel:
        print("Error: --kernel is required for 'filter' mode.")
        return 1

    try:
        channels, frame_rate = read_wav(args.input)
        print(
            f"Input WAV: {len(channels)} channels, {frame_rate} Hz, {len(channels[0])} frames "
            f"({len(channels[0]) / frame_rate:.2f}s)."
        )

        if args.mode == "filter":
            processed = run_filter(channels, args.kernel, METHOD_CHOICES[args.method])
        else:
            processed = run_pitch_shift(channels, args.shift, args.fft_size, args.hop_size, args.wet, args.dry)

        write_wav(args.output, processed, frame_rate)
        print(f"Output written to: {args.output}")

    except wave.Error as e:
        print(f"Error reading WAV file: {e}")
        return 1
    except SpectralError as e:
        print(f"Error: invalid engine configuration: {e}")
        return 1
    except (ValueError, OSError) as e:
        print(f"Error: {e}")
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
