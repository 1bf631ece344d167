# batch.py — runs a list of cuts against one uploaded source, one at a time

import os, time, uuid, logging
from functools import partial
from typing import Awaitable, Callable, Optional, Sequence

import utils
from errors import EngineError
from models import BatchResult, CutFailure, CutRequest, CutSuccess, NormalizedRange
from utils import Settings, timestamp_to_seconds

logger = logging.getLogger(__name__)

Extractor = Callable[..., Awaitable[str]]


def new_cut_id() -> str:
    return uuid.uuid4().hex


async def run_batch(
    input_path: str,
    cuts: Sequence[CutRequest],
    settings: Settings,
    extract: Optional[Extractor] = None,
    new_id: Callable[[], str] = new_cut_id,
    on_progress: Optional[Callable[[int, float], None]] = None,
) -> BatchResult:
    """
    Produce one outcome per cut, in order.

    A bad range or an ffmpeg failure is recorded against its index and the
    next cut still runs. Anything other than EngineError propagates.
    """
    extract = extract or utils.cut_video_segment
    started = time.monotonic()
    total = len(cuts)
    outcomes = []

    for i, cut in enumerate(cuts):
        start = timestamp_to_seconds(cut.start)
        end = timestamp_to_seconds(cut.end)
        span = NormalizedRange.from_bounds(start, end)
        if span is None:
            message = f"Invalid time range: {cut.start} to {cut.end}"
            logger.warning("[Server] Cut %d/%d skipped: %s", i + 1, total, message)
            outcomes.append(CutFailure(index=i, message=message))
            continue

        filename = f"{new_id()}.mp4"
        output_path = os.path.join(settings.cuts_dir, filename)
        observer = partial(on_progress, i) if on_progress else None
        try:
            await extract(input_path, output_path, span.start_seconds, span.duration_seconds,
                          settings, on_progress=observer)
        except EngineError as e:
            logger.error("❌ [Server] Cut %d failed: %s", i + 1, e.message)
            outcomes.append(CutFailure(index=i, message=e.message))
            continue

        outcomes.append(CutSuccess(output_path=f"cuts/{filename}"))
        logger.info("[Server] Cut %d/%d completed", i + 1, total)

    result = BatchResult(outcomes=outcomes, elapsed_seconds=time.monotonic() - started)
    logger.info("✅ [Server] Batch done in %.2fs: %d cuts, %d errors",
                result.elapsed_seconds, len(result.cuts), len(result.errors))
    return result
