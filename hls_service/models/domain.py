from __future__ import annotations

from enum import Enum
from pathlib import PurePath
from typing import Optional

from pydantic import BaseModel

HLS_URL_PREFIX = "/hls"
MASTER_PLAYLIST = "master.m3u8"


class TranscodeStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


def transcode_dir_for(video_name: str) -> str:
    """Output directory name for a source video: its filename without the final extension."""
    return video_name[: len(video_name) - len(PurePath(video_name).suffix)]


def stream_url_for(transcode_dir: str) -> str:
    return f"{HLS_URL_PREFIX}/{transcode_dir}/{MASTER_PLAYLIST}"


class TranscodeJob(BaseModel):
    original_name: str
    transcode_dir: str
    status: TranscodeStatus

    @classmethod
    def start(cls, video_name: str) -> TranscodeJob:
        return cls(
            original_name=video_name,
            transcode_dir=transcode_dir_for(video_name),
            status=TranscodeStatus.PROCESSING,
        )

    @property
    def stream_url(self) -> Optional[str]:
        if self.status != TranscodeStatus.COMPLETED:
            return None
        return stream_url_for(self.transcode_dir)
