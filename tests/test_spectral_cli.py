import wave

import numpy as np
import pytest

import spectral_cli


SAMPLE_RATE = 44100


def write_test_wav(path, samples, channels=1, sample_rate=SAMPLE_RATE):
    pcm = (np.clip(samples, -1.0, 1.0) * 32767).astype(np.int16)
    with wave.open(str(path), "wb") as wav_out:
        wav_out.setnchannels(channels)
        wav_out.setsampwidth(2)
        wav_out.setframerate(sample_rate)
        wav_out.writeframes(pcm.tobytes())


def read_test_wav(path):
    with wave.open(str(path), "rb") as wav_in:
        n_channels = wav_in.getnchannels()
        frames = wav_in.readframes(wav_in.getnframes())
    return np.frombuffer(frames, dtype=np.int16), n_channels


@pytest.fixture
def mono_wav(tmp_path):
    t = np.arange(4096) / SAMPLE_RATE
    samples = 0.5 * np.sin(2.0 * np.pi * 440.0 * t)
    path = tmp_path / "input.wav"
    write_test_wav(path, samples)
    return path


def test_read_write_wav_round_trip(tmp_path):
    path = tmp_path / "stereo.wav"
    rng = np.random.default_rng(3)
    left = rng.uniform(-0.9, 0.9, 100).astype(np.float32)
    right = rng.uniform(-0.9, 0.9, 100).astype(np.float32)
    spectral_cli.write_wav(str(path), [left, right], 22050)

    channels, rate = spectral_cli.read_wav(str(path))
    assert rate == 22050
    assert len(channels) == 2
    np.testing.assert_allclose(channels[0], left, atol=2.0 / 32768)
    np.testing.assert_allclose(channels[1], right, atol=2.0 / 32768)


def test_identity_filter(tmp_path, mono_wav):
    kernel_path = tmp_path / "kernel.txt"
    kernel_path.write_text("1.0\n")
    output = tmp_path / "out.wav"

    code = spectral_cli.main(["-i", str(mono_wav), "-o", str(output), "-m", "filter",
                              "--kernel", str(kernel_path), "--method", "overlap-save"])
    assert code == 0

    original, _ = read_test_wav(mono_wav)
    filtered, n_channels = read_test_wav(output)
    assert n_channels == 1
    assert filtered.shape == original.shape
    assert np.max(np.abs(filtered.astype(np.int32) - original.astype(np.int32))) <= 2


def test_filter_output_grows_by_kernel_tail(tmp_path, mono_wav):
    kernel_path = tmp_path / "kernel.txt"
    kernel_path.write_text("0.25 0.25 0.25 0.25\n")
    output = tmp_path / "out.wav"

    assert spectral_cli.main(["-i", str(mono_wav), "-o", str(output), "-m", "filter",
                              "--kernel", str(kernel_path)]) == 0
    filtered, _ = read_test_wav(output)
    assert filtered.shape == (4096 + 3,)


def test_pitch_shift_keeps_length(tmp_path, mono_wav):
    output = tmp_path / "shifted.wav"
    code = spectral_cli.main(["-i", str(mono_wav), "-o", str(output), "-m", "pitch-shift",
                              "--shift", "1.5", "--fft-size", "256", "--hop-size", "32"])
    assert code == 0
    shifted, _ = read_test_wav(output)
    assert shifted.shape == (4096,)
    assert np.any(shifted != 0)


def test_missing_input_returns_error(tmp_path):
    code = spectral_cli.main(["-i", str(tmp_path / "nope.wav"), "-o", str(tmp_path / "out.wav"),
                              "-m", "pitch-shift"])
    assert code == 1


def test_filter_requires_kernel(tmp_path, mono_wav):
    code = spectral_cli.main(["-i", str(mono_wav), "-o", str(tmp_path / "out.wav"), "-m", "filter"])
    assert code == 1


def test_invalid_vocoder_configuration_returns_error(tmp_path, mono_wav):
    code = spectral_cli.main(["-i", str(mono_wav), "-o", str(tmp_path / "out.wav"), "-m", "pitch-shift",
                              "--fft-size", "300", "--hop-size", "64"])
    assert code == 1
    assert not (tmp_path / "out.wav").exists()


def test_debug_log_option(tmp_path, mono_wav):
    log_file = tmp_path / "debug.log"
    kernel_path = tmp_path / "kernel.txt"
    kernel_path.write_text("0.5 0.5\n")
    try:
        code = spectral_cli.main(["-i", str(mono_wav), "-o", str(tmp_path / "out.wav"), "-m", "filter",
                                  "--kernel", str(kernel_path), "--method", "overlap-add",
                                  "--debug-log", str(log_file)])
    finally:
        from pyspectral.common.debug_logger import disable_debug_logging
        disable_debug_logging()
    assert code == 0
    assert "BLOCK_OUTPUT" in log_file.read_text()
