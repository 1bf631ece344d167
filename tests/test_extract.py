"""
Drive cut_video_segment() against small shell scripts posing as ffmpeg.
"""
import asyncio
import os
import stat
import sys

import pytest

from errors import EngineError
from utils import cut_video_segment

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell")

OK_SCRIPT = """#!/bin/sh
for last; do :; done
printf 'frame=10\\nout_time_ms=1500000\\nprogress=continue\\n'
printf 'out_time_ms=N/A\\nout_time_ms=3000000\\nprogress=end\\n'
printf 'clip' > "$last"
"""

FAIL_SCRIPT = """#!/bin/sh
for last; do :; done
printf 'partial' > "$last"
echo "Input #0, mov,mp4" >&2
echo "in.mp4: Invalid data found when processing input" >&2
exit 1
"""

SILENT_SCRIPT = """#!/bin/sh
exit 0
"""


def fake_ffmpeg(tmp_path, body):
    path = tmp_path / "ffmpeg"
    path.write_text(body)
    path.chmod(path.stat().st_mode | stat.S_IEXEC)
    return str(path)


def cut(settings, out, **kwargs):
    return asyncio.run(cut_video_segment("in.mp4", str(out), 5, 3, settings, **kwargs))


def test_success_returns_output_and_reports_progress(settings, tmp_path):
    settings.ffmpeg_path = fake_ffmpeg(tmp_path, OK_SCRIPT)
    out = settings.cuts_dir / "a.mp4"
    seen = []

    assert cut(settings, out, on_progress=seen.append) == str(out)
    assert out.read_bytes() == b"clip"
    assert seen == [50.0, 100.0]


def test_failing_observer_does_not_fail_the_cut(settings, tmp_path):
    settings.ffmpeg_path = fake_ffmpeg(tmp_path, OK_SCRIPT)
    out = settings.cuts_dir / "a.mp4"

    def boom(percent):
        raise RuntimeError("observer broke")

    assert cut(settings, out, on_progress=boom) == str(out)
    assert out.exists()


def test_failure_raises_engine_error_and_removes_partial_output(settings, tmp_path):
    settings.ffmpeg_path = fake_ffmpeg(tmp_path, FAIL_SCRIPT)
    out = settings.cuts_dir / "a.mp4"

    with pytest.raises(EngineError) as info:
        cut(settings, out)

    assert info.value.returncode == 1
    assert info.value.message.startswith("ffmpeg exited with code 1:")
    assert "Invalid data found" in info.value.message
    assert not out.exists()


def test_zero_exit_without_output_is_a_failure(settings, tmp_path):
    settings.ffmpeg_path = fake_ffmpeg(tmp_path, SILENT_SCRIPT)
    out = settings.cuts_dir / "a.mp4"

    with pytest.raises(EngineError, match="without writing an output file"):
        cut(settings, out)


def test_missing_binary_is_an_engine_error(settings, tmp_path):
    settings.ffmpeg_path = str(tmp_path / "no-such-ffmpeg")
    out = settings.cuts_dir / "a.mp4"

    with pytest.raises(EngineError, match="Cannot start ffmpeg"):
        cut(settings, out)
    assert not os.path.exists(out)
