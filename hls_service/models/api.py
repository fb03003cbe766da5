from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from .domain import TranscodeJob, TranscodeStatus


class VideoInfo(BaseModel):
    name: str
    transcoded: bool = False
    status: Optional[TranscodeStatus] = None
    stream_url: Optional[str] = None
    transcode_dir: Optional[str] = None

    @classmethod
    def from_job(cls, name: str, job: TranscodeJob | None) -> VideoInfo:
        if job is None:
            return cls(name=name)
        return cls(
            name=name,
            transcoded=job.status == TranscodeStatus.COMPLETED,
            status=job.status,
            stream_url=job.stream_url,
            transcode_dir=job.transcode_dir,
        )


class TranscodeResponse(BaseModel):
    message: str
    status: Optional[TranscodeStatus] = None
    transcode_dir: Optional[str] = None
    stream_url: Optional[str] = None


class StatusResponse(BaseModel):
    video: str
    transcode_dir: str
    status: TranscodeStatus
    stream_url: Optional[str] = None

    @classmethod
    def from_job(cls, job: TranscodeJob) -> StatusResponse:
        return cls(
            video=job.original_name,
            transcode_dir=job.transcode_dir,
            status=job.status,
            stream_url=job.stream_url,
        )
