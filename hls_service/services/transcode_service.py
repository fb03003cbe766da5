from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from hls_service.clients.ffmpeg import EncodeResult, FFmpegEncoder
from hls_service.config import Settings
from hls_service.models.api import StatusResponse, TranscodeResponse, VideoInfo
from hls_service.models.domain import TranscodeJob, TranscodeStatus
from hls_service.queue.queue import BaseQueue
from hls_service.storage.repository import RegistryView, TranscodeJobRepository
from hls_service.storage.state_file import JobStateFile, StateLoadError

VIDEO_EXTENSIONS = frozenset({".mp4", ".mkv", ".avi", ".mov", ".webm"})


class InvalidVideoNameError(ValueError):
    pass


class VideoNotFoundError(ValueError):
    pass


class JobNotFoundError(ValueError):
    pass


class OutputDirectoryError(RuntimeError):
    pass


class TranscodeService:
    def __init__(
        self,
        repo: TranscodeJobRepository,
        settings: Settings,
        encoder: FFmpegEncoder | None = None,
        state_file: JobStateFile | None = None,
    ) -> None:
        self.repo = repo
        self.settings = settings
        self.queue: BaseQueue | None = None
        self.log = logging.getLogger(__name__)
        self.videos_dir = Path(settings.videos_dir)
        self.transcoded_dir = Path(settings.transcoded_dir)
        self.encoder = encoder or FFmpegEncoder(
            binary=settings.ffmpeg_binary,
            segment_seconds=settings.hls_segment_seconds,
            logger=self.log,
        )
        self.state_file = state_file or JobStateFile(settings.state_file)

    def bind_queue(self, queue: BaseQueue) -> None:
        self.queue = queue

    def startup(self) -> None:
        """Create the working directories and install the persisted registry."""
        self.videos_dir.mkdir(parents=True, exist_ok=True)
        self.transcoded_dir.mkdir(parents=True, exist_ok=True)
        try:
            jobs = self.state_file.load()
        except StateLoadError:
            self.log.warning("could not load transcode state, starting empty", exc_info=True)
            jobs = {}
        self.repo.replace_all(jobs)
        stale = sorted(name for name, job in jobs.items() if job.status == TranscodeStatus.PROCESSING)
        if stale:
            self.log.warning(
                "jobs left processing by a previous run will block resubmission: %s",
                ", ".join(stale),
                extra={"jobs": stale},
            )
        self.log.info("loaded transcode state", extra={"jobs": len(jobs), "path": str(self.state_file.path)})

    def list_videos(self) -> list[VideoInfo]:
        entries = sorted(os.scandir(self.videos_dir), key=lambda entry: entry.name)
        videos: list[VideoInfo] = []
        with self.repo.shared() as view:
            for entry in entries:
                if entry.is_dir():
                    continue
                if Path(entry.name).suffix.lower() not in VIDEO_EXTENSIONS:
                    continue
                videos.append(VideoInfo.from_job(entry.name, view.get(entry.name)))
        return videos

    def submit(self, video_name: Optional[str]) -> TranscodeResponse:
        self._validate_name(video_name)
        source = self.videos_dir / video_name
        if not source.is_file():
            raise VideoNotFoundError("Video not found")

        with self.repo.exclusive() as view:
            existing = view.get(video_name)
            if existing and existing.status == TranscodeStatus.COMPLETED:
                return TranscodeResponse(
                    message="Video already transcoded",
                    transcode_dir=existing.transcode_dir,
                    stream_url=existing.stream_url,
                )
            if existing and existing.status == TranscodeStatus.PROCESSING:
                return TranscodeResponse(
                    message="Video is currently being transcoded",
                    status=TranscodeStatus.PROCESSING,
                )
            job = TranscodeJob.start(video_name)
            output_dir = self.transcoded_dir / job.transcode_dir
            try:
                output_dir.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                self.log.error(
                    "cannot create output directory",
                    extra={"video": video_name, "path": str(output_dir)},
                    exc_info=True,
                )
                raise OutputDirectoryError("Could not prepare output directory") from exc
            view.put(video_name, job)
            self._persist(view)

        self.log.info("transcode job accepted", extra={"video": video_name, "retry": existing is not None})
        if self.queue is not None:
            self.queue.enqueue(video_name)
        else:  # pragma: no cover - fallback for misconfiguration
            self.process_job(video_name)
        return TranscodeResponse(
            message="Transcoding started",
            transcode_dir=job.transcode_dir,
            status=TranscodeStatus.PROCESSING,
        )

    def get_status(self, video_name: str) -> StatusResponse:
        job = self.repo.get(video_name)
        if not job:
            raise JobNotFoundError("Video not found")
        return StatusResponse.from_job(job)

    def process_job(self, video_name: str) -> None:
        job = self.repo.get(video_name)
        if not job:
            self.log.warning("no job record for queued video", extra={"video": video_name})
            return
        self.run_transcode(
            str((self.videos_dir / video_name).resolve()),
            str((self.transcoded_dir / job.transcode_dir).resolve()),
            video_name,
        )

    def run_transcode(self, source: str, output_dir: str, video_name: str) -> TranscodeStatus:
        self.log.info("starting transcode", extra={"video": video_name})
        try:
            result = self.encoder.encode(source, output_dir)
        except Exception as exc:
            self.log.exception("encoder crashed", extra={"video": video_name})
            result = EncodeResult(success=False, returncode=None, output=str(exc))

        if result.success:
            status = TranscodeStatus.COMPLETED
            self.log.info("transcode completed", extra={"video": video_name})
        else:
            status = TranscodeStatus.FAILED
            self.log.error(
                "transcode failed for %s (exit %s)\n%s",
                video_name,
                result.returncode,
                result.output,
                extra={"video": video_name},
            )

        with self.repo.exclusive() as view:
            job = view.get(video_name)
            if job is None:
                job = TranscodeJob.start(video_name)
            job.status = status
            view.put(video_name, job)
            self._persist(view)
        return status

    def _persist(self, view: RegistryView) -> None:
        try:
            self.state_file.save(view.snapshot())
        except OSError:
            self.log.warning(
                "failed to persist transcode state",
                extra={"path": str(self.state_file.path)},
                exc_info=True,
            )

    def _validate_name(self, video_name: Optional[str]) -> None:
        if not video_name:
            raise InvalidVideoNameError("Missing 'video' parameter")
        if video_name in (".", "..") or "/" in video_name or "\\" in video_name or "\x00" in video_name:
            raise InvalidVideoNameError("Invalid video name")
