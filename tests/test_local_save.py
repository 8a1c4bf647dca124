from datetime import datetime

from meetscribe.publishing.local import format_transcript_file, save_transcript

NOW = datetime(2024, 3, 5, 14, 7, 9)


def test_file_layout_with_summary():
    content = format_transcript_file(
        "[Segment 1]\nhello", source="recording.wav", summary="Key points", title="Sync", now=NOW
    )

    lines = content.split("\n")
    assert lines[0] == "=== Audio Transcription - 2024-03-05 14:07:09 ==="
    assert lines[1] == "Source file: recording.wav"
    assert lines[2] == "Title: Sync"
    assert "📝 SUMMARY:" in lines
    assert content.index("📝 SUMMARY:") < content.index("📄 FULL TRANSCRIPT:")
    assert content.rstrip().endswith("[Segment 1]\nhello")


def test_file_layout_without_summary():
    content = format_transcript_file("just text", now=NOW)

    assert "SUMMARY" not in content
    assert "Source file" not in content
    assert "📄 FULL TRANSCRIPT:" in content


def test_save_transcript_writes_timestamped_file(tmp_path):
    path = save_transcript("ข้อความภาษาไทย", tmp_path / "out", source="a.wav", now=NOW)

    assert path.name == "Transcript-20240305-140709.txt"
    assert path.is_absolute()
    assert "ข้อความภาษาไทย" in path.read_text(encoding="utf-8")


def test_runs_in_the_same_second_keep_separate_files(tmp_path):
    first = save_transcript("first run", tmp_path, now=NOW)
    second = save_transcript("second run", tmp_path, now=NOW)
    third = save_transcript("third run", tmp_path, now=NOW)

    assert [p.name for p in (first, second, third)] == [
        "Transcript-20240305-140709.txt",
        "Transcript-20240305-140709-2.txt",
        "Transcript-20240305-140709-3.txt",
    ]
    assert "first run" in first.read_text(encoding="utf-8")
    assert "second run" in second.read_text(encoding="utf-8")
