import io

import numpy as np
import pytest

from meetscribe.audio.models import RecordingMode
from meetscribe.audio.monitor import MICROPHONE, SYSTEM, ProgressReporter, RecordingSession, peak_amplitude, volume_bar


class _FakeClock:
    def __init__(self, now: float = 100.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_peak_amplitude_of_empty_buffer_is_zero():
    assert peak_amplitude(b"") == 0.0
    assert peak_amplitude(b"\x01") == 0.0


def test_peak_amplitude_uses_largest_absolute_sample():
    buffer = np.array([100, -16384, 200], dtype="<i2").tobytes()
    assert peak_amplitude(buffer) == pytest.approx(0.5)


def test_peak_amplitude_ignores_trailing_partial_sample():
    buffer = np.array([3276], dtype="<i2").tobytes() + b"\x7f"
    assert peak_amplitude(buffer) == pytest.approx(0.1, abs=1e-3)


def test_peak_amplitude_of_full_scale_is_capped_at_one():
    buffer = np.array([-32768], dtype="<i2").tobytes()
    assert peak_amplitude(buffer) == 1.0


def test_peak_amplitude_supports_32_bit_samples():
    buffer = np.array([1 << 30], dtype="<i4").tobytes()
    assert peak_amplitude(buffer, sample_width=4) == pytest.approx(0.5)


def test_volume_bar_renders_fixed_width():
    assert volume_bar(0.0) == "[" + "─" * 20 + "]"
    assert volume_bar(0.5) == "[" + "▌" * 10 + "─" * 10 + "]"
    assert volume_bar(2.0) == "[" + "▌" * 20 + "]"


def test_session_tracks_levels_bytes_and_elapsed_time():
    clock = _FakeClock()
    session = RecordingSession(RecordingMode.BOTH, clock=clock)
    session.start()

    session.update_level(MICROPHONE, np.array([16384], dtype="<i2").tobytes())
    session.update_level(SYSTEM, np.array([8192], dtype="<i2").tobytes())
    session.add_bytes(2048)
    session.add_bytes(1024)
    clock.now += 7.5

    assert session.mic_level == pytest.approx(0.5)
    assert session.system_level == pytest.approx(0.25)
    assert session.bytes_recorded == 3072
    assert session.elapsed() == pytest.approx(7.5)

    session.stop()
    clock.now += 10
    assert session.stopped
    assert session.elapsed() == pytest.approx(7.5)


def test_session_rejects_unknown_source():
    session = RecordingSession()
    with pytest.raises(ValueError):
        session.update_level("speaker", b"\x00\x00")


def test_reporter_shows_bars_for_active_inputs():
    clock = _FakeClock()
    session = RecordingSession(RecordingMode.MICROPHONE, clock=clock)
    session.start()
    clock.now += 65

    line = ProgressReporter(session, stream=io.StringIO()).render()

    assert line.startswith("Recording: 01:05 | Mic: [")
    assert "System:" not in line
    assert line.endswith("Press [Enter] to stop")


def test_reporter_for_both_inputs():
    session = RecordingSession(RecordingMode.BOTH)
    line = ProgressReporter(session, stream=io.StringIO()).render()

    assert "Mic: [" in line
    assert "System: [" in line


def test_reporter_thread_stops_with_session():
    output = io.StringIO()
    session = RecordingSession(RecordingMode.SYSTEM)
    session.start()
    reporter = ProgressReporter(session, stream=output, interval=0.01)
    reporter.start()

    session.stop()
    reporter.join(timeout=2.0)

    assert output.getvalue().endswith("\n")
