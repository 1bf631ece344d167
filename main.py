import os
import time
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import APIRouter, FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi.middleware.cors import CORSMiddleware

from batch import run_batch
from errors import CutApiError
from models import CutVideoResponse, ErrorResponse, HealthResponse, parse_cuts
from uploads import NO_VIDEO, check_upload, stored_upload
from utils import Settings, ensure_dirs
from workers import sweep_stale_uploads

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

APP_TITLE = "Video Cut API"
APP_VERSION = "1.0.0"

router = APIRouter()


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(ErrorResponse(error=message).model_dump(), status_code=status_code)


@router.get("/health")
def health(request: Request):
    settings: Settings = request.app.state.settings
    return HealthResponse(ffmpegPath=settings.ffmpeg_path).model_dump()


@router.post("/cut-video")
async def cut_video(
    request: Request,
    video: UploadFile = File(None),
    cuts: str = Form(None),
):
    started = time.monotonic()
    settings: Settings = request.app.state.settings
    try:
        check_upload(video)
        requested = parse_cuts(cuts)
        logger.info("[Server] Processing %d cuts for: %s", len(requested), video.filename)

        async with stored_upload(video, settings) as source:
            result = await run_batch(source.path, requested, settings)

        body = CutVideoResponse.from_batch(result, time.monotonic() - started)
        logger.info("✅ [Server] Completed in %s: %d cuts, %d errors",
                    body.processingTime, len(result.cuts), len(result.errors))
        return JSONResponse(body.model_dump(exclude_none=True))

    except CutApiError as e:
        logger.warning("[Server] Rejected: %s", e.message)
        return error_response(e.message, e.status_code)
    except Exception as e:
        logger.exception("❌ [Server] Error")
        return error_response(str(e) or "Internal server error", 500)


async def form_error_handler(request: Request, exc: RequestValidationError):
    # a "video" field that is not a file counts as no file at all
    if any(tuple(err.get("loc", ()))[-1:] == ("video",) for err in exc.errors()):
        message = NO_VIDEO
    else:
        message = "; ".join(str(err.get("msg", "")) for err in exc.errors()) or "Invalid request"
    logger.warning("[Server] Rejected: %s", message)
    return error_response(message, 400)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    ensure_dirs(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("🎬 Video Processing Server running on port %s", settings.port)
        logger.info("📁 Uploads: %s", settings.upload_dir)
        logger.info("📁 Cuts: %s", settings.cuts_dir)
        logger.info("🔧 FFmpeg: %s", settings.ffmpeg_path)
        await asyncio.to_thread(sweep_stale_uploads, settings)
        yield

    app = FastAPI(title=APP_TITLE, version=APP_VERSION, lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    app.add_exception_handler(RequestValidationError, form_error_handler)
    app.include_router(router)
    app.mount("/cuts", StaticFiles(directory=settings.cuts_dir), name="cuts")

    return app


app = create_app()


def run():
    settings: Settings = app.state.settings
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
