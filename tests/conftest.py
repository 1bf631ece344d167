"""
Pytest configuration for the cut API test suite.
"""

import os
import sys
import tempfile

import pytest

# main.py builds a default app at import time; keep it away from the repo and
# from whatever ffmpeg the machine has.
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="cut-api-tests-"))
os.environ.setdefault("FFMPEG_PATH", "ffmpeg")

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from errors import EngineError
from utils import Settings


@pytest.fixture
def settings(tmp_path):
    """Settings rooted in a per-test directory."""
    s = Settings(
        upload_dir=tmp_path / "uploads",
        cuts_dir=tmp_path / "cuts",
        ffmpeg_path="ffmpeg",
    )
    s.upload_dir.mkdir()
    s.cuts_dir.mkdir()
    return s


class FakeExtractor:
    """Stands in for ffmpeg: records calls and writes a small output file."""

    def __init__(self, fail_on=()):
        self.calls = []
        self.fail_on = set(fail_on)

    async def __call__(self, input_path, output_path, start_seconds, duration_seconds,
                       settings, on_progress=None):
        self.calls.append((input_path, output_path, start_seconds, duration_seconds))
        if len(self.calls) - 1 in self.fail_on:
            raise EngineError("ffmpeg exited with code 1: Invalid data found", returncode=1)
        if on_progress is not None:
            on_progress(100.0)
        with open(output_path, "wb") as f:
            f.write(b"clip")
        return output_path


@pytest.fixture
def fake_extract():
    return FakeExtractor()
