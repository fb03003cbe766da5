from __future__ import annotations

import logging
import os
import threading
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.staticfiles import StaticFiles

from hls_service.config import Settings, get_settings
from hls_service.models.api import StatusResponse, TranscodeResponse, VideoInfo
from hls_service.queue.queue import LocalQueue
from hls_service.services.transcode_service import (
    InvalidVideoNameError,
    JobNotFoundError,
    OutputDirectoryError,
    TranscodeService,
    VideoNotFoundError,
)
from hls_service.storage.repository import TranscodeJobRepository

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET,HEAD,OPTIONS,POST",
    "Access-Control-Allow-Headers": "Range, Accept, Origin, X-Requested-With, Content-Type",
    "Access-Control-Expose-Headers": "Content-Length, Content-Range",
}

HLS_MEDIA_TYPES = {
    ".m3u8": "application/vnd.apple.mpegurl",
    ".ts": "video/mp2t",
}

log = logging.getLogger(__name__)

_service_lock = threading.Lock()


class HLSStaticFiles(StaticFiles):
    def file_response(self, full_path, stat_result, scope, status_code=200):
        response = super().file_response(full_path, stat_result, scope, status_code)
        media_type = HLS_MEDIA_TYPES.get(os.path.splitext(str(full_path))[1].lower())
        if media_type:
            response.headers["content-type"] = media_type
        return response


def build_service(settings: Settings) -> TranscodeService:
    service = TranscodeService(repo=TranscodeJobRepository(), settings=settings)
    service.startup()
    service.bind_queue(LocalQueue(processor=service.process_job, max_workers=settings.max_workers))
    return service


def get_transcode_service(request: Request) -> TranscodeService:
    return _ensure_service(request.app)


@asynccontextmanager
async def lifespan(app: FastAPI):
    _ensure_service(app)
    log.info("server listening on %s:%s", app.state.settings.host, app.state.settings.port)
    log.info("endpoints:")
    log.info("  GET  /api/videos - list all videos")
    log.info("  POST /api/transcode?video=<name> - transcode a video")
    log.info("  GET  /api/status/<video> - get transcode status")
    log.info("  GET  /hls/<dir>/master.m3u8 - stream transcoded video")
    yield


def _ensure_service(app: FastAPI) -> TranscodeService:
    with _service_lock:
        if app.state.service is None:
            app.state.service = build_service(app.state.settings)
    return app.state.service


def create_app(settings: Settings | None = None, service: TranscodeService | None = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.settings = settings
    app.state.service = service

    @app.middleware("http")
    async def cors_headers(request: Request, call_next):
        if request.method == "OPTIONS":
            response = Response(status_code=status.HTTP_204_NO_CONTENT)
        else:
            response = await call_next(request)
        response.headers.update(CORS_HEADERS)
        return response

    @app.get("/api/videos", response_model=list[VideoInfo], response_model_exclude_none=True)
    def list_videos(service: TranscodeService = Depends(get_transcode_service)) -> list[VideoInfo]:
        try:
            return service.list_videos()
        except OSError as exc:
            log.warning("could not read videos directory", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Could not read videos directory",
            ) from exc

    @app.post("/api/transcode", response_model=TranscodeResponse, response_model_exclude_none=True)
    def transcode(
        video: str | None = Query(default=None),
        service: TranscodeService = Depends(get_transcode_service),
    ) -> TranscodeResponse:
        try:
            return service.submit(video)
        except InvalidVideoNameError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        except VideoNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        except OutputDirectoryError as exc:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc

    @app.get("/api/status/{video:path}", response_model=StatusResponse, response_model_exclude_none=True)
    def get_status(video: str, service: TranscodeService = Depends(get_transcode_service)) -> StatusResponse:
        if not video:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing video name")
        try:
            return service.get_status(video)
        except JobNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    app.mount("/hls", HLSStaticFiles(directory=settings.transcoded_dir, check_dir=False), name="hls")
    return app


app = create_app()
