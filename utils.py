# utils.py — settings, paths, timestamps, ffmpeg helpers

import os, re, shutil, asyncio, logging
from pathlib import Path
from typing import Callable, List, Optional, Tuple

import imageio_ffmpeg
from pydantic import BaseModel

from errors import EngineError

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent
MAX_UPLOAD_BYTES = 2 * 1024 * 1024 * 1024  # 2GB

ProgressCallback = Callable[[float], None]


def locate_ffmpeg() -> str:
    """FFMPEG_PATH wins, then ffmpeg on PATH, then the imageio-ffmpeg bundled binary."""
    explicit = os.getenv("FFMPEG_PATH", "").strip()
    if explicit:
        return explicit
    found = shutil.which("ffmpeg")
    if found:
        return found
    return imageio_ffmpeg.get_ffmpeg_exe()


class Settings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3001
    upload_dir: Path = BASE_DIR / "uploads"
    cuts_dir: Path = BASE_DIR / "cuts"
    ffmpeg_path: str = "ffmpeg"
    max_upload_bytes: int = MAX_UPLOAD_BYTES
    stale_upload_hours: float = 24.0

    @classmethod
    def from_env(cls) -> "Settings":
        data_dir = Path(os.getenv("DATA_DIR", "").strip() or BASE_DIR)
        return cls(
            host=os.getenv("HOST", "0.0.0.0").strip(),
            port=int(os.getenv("PORT", "3001")),
            upload_dir=Path(os.getenv("UPLOAD_DIR", "").strip() or data_dir / "uploads"),
            cuts_dir=Path(os.getenv("CUTS_DIR", "").strip() or data_dir / "cuts"),
            ffmpeg_path=locate_ffmpeg(),
            max_upload_bytes=int(os.getenv("MAX_UPLOAD_BYTES", str(MAX_UPLOAD_BYTES))),
            stale_upload_hours=float(os.getenv("STALE_UPLOAD_HOURS", "24")),
        )


def ensure_dirs(settings: Settings):
    for d in (settings.upload_dir, settings.cuts_dir):
        os.makedirs(d, exist_ok=True)


def safe(name: str) -> str:
    return "".join(c for c in (name or "file") if c.isalnum() or c in ("-", "_", "."))[:120]


# =========================
# Timestamps
# =========================
_NUMBER = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def _component(text: str) -> Optional[float]:
    # an empty component ("" in ":30") counts as zero
    text = text.strip()
    if not text:
        return 0.0
    if not _NUMBER.fullmatch(text):
        return None
    return float(text)


def timestamp_to_seconds(value) -> float:
    """
    Lenient parse of "HH:MM:SS", "MM:SS" or plain seconds.

    Numbers pass through. Anything unparsable quietly becomes 0; the range
    check in the batch rejects the cut afterwards.
    """
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return value
    if not isinstance(value, str):
        return 0.0

    parts = value.split(":")
    if len(parts) in (2, 3):
        nums = [_component(p) for p in parts]
        if any(n is None for n in nums):
            return 0.0
        if len(nums) == 3:
            return nums[0] * 3600 + nums[1] * 60 + nums[2]
        return nums[0] * 60 + nums[1]

    match = _NUMBER.match(value.strip())
    return float(match.group(0)) if match else 0.0


# =========================
# ffmpeg
# =========================
def build_cut_command(ffmpeg_path: str, input_path: str, output_path: str,
                      start_seconds: float, duration_seconds: float) -> List[str]:
    return [
        ffmpeg_path, "-hide_banner", "-nostats", "-y",
        "-ss", f"{start_seconds:.3f}", "-i", input_path,
        "-t", f"{duration_seconds:.3f}",
        "-c:v", "libx264", "-c:a", "aac",
        "-preset", "veryfast", "-crf", "23",
        "-movflags", "+faststart",
        "-avoid_negative_ts", "make_zero",
        "-progress", "pipe:1",
        output_path,
    ]


async def _watch_progress(stream, duration_seconds: float, on_progress: Optional[ProgressCallback]):
    async for raw in stream:
        key, _, value = raw.decode(errors="replace").strip().partition("=")
        # out_time_ms is reported in microseconds
        if key != "out_time_ms" or duration_seconds <= 0:
            continue
        try:
            micros = int(value)
        except ValueError:
            continue
        percent = min(100.0, micros / 1_000_000 / duration_seconds * 100)
        logger.info("[FFmpeg] Progress: %.1f%%", percent)
        if on_progress is None:
            continue
        try:
            on_progress(percent)
        except Exception:
            logger.exception("[FFmpeg] progress observer failed")


async def _run(cmd: List[str], duration_seconds: float,
               on_progress: Optional[ProgressCallback] = None) -> Tuple[int, str]:
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE
        )
    except OSError as e:
        raise EngineError(f"Cannot start ffmpeg: {e}") from e
    _, stderr = await asyncio.gather(
        _watch_progress(proc.stdout, duration_seconds, on_progress),
        proc.stderr.read(),
    )
    code = await proc.wait()
    return code, (stderr or b"").decode(errors="replace").strip()


def _tail(text: str, limit: int = 500) -> str:
    lines = [line for line in text.splitlines() if line.strip()]
    return "\n".join(lines[-5:])[-limit:]


def discard(path: str):
    try:
        if os.path.exists(path):
            os.remove(path)
    except OSError as e:
        logger.warning("⚠️ Could not remove %s: %s", path, e)


async def cut_video_segment(
    input_path: str,
    output_path: str,
    start_seconds: float,
    duration_seconds: float,
    settings: Settings,
    on_progress: Optional[ProgressCallback] = None,
) -> str:
    """
    Re-encode [start, start + duration) of input_path into output_path.

    Fixed profile: libx264/aac, veryfast, crf 23, faststart, negative
    timestamps clamped to zero. Waits for ffmpeg to exit. Raises EngineError
    on failure, after removing whatever was partially written.
    """
    cmd = build_cut_command(settings.ffmpeg_path, input_path, output_path,
                            start_seconds, duration_seconds)
    logger.info("[FFmpeg] Starting: %s", " ".join(cmd))

    code, err = await _run(cmd, duration_seconds, on_progress)
    if code != 0 or not os.path.exists(output_path):
        discard(output_path)
        if code != 0:
            message = f"ffmpeg exited with code {code}: {_tail(err)}"
        else:
            message = "ffmpeg finished without writing an output file"
        logger.error("❌ [FFmpeg] Error: %s", message)
        raise EngineError(message, returncode=code)

    logger.info("[FFmpeg] Completed: %s", output_path)
    return output_path
