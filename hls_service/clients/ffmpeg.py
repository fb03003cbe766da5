from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import List, Optional

from hls_service.models.domain import MASTER_PLAYLIST

# (scale, video bitrate, audio bitrate) per rung
LADDER = [
    ("scale=w=854:h=480", "300k", "64k"),
    ("scale=w=1280:h=720", "1500k", "96k"),
    ("scale=w=1920:h=1080", "3000k", "128k"),
]
GOP_SIZE = "60"


@dataclass
class EncodeResult:
    success: bool
    returncode: Optional[int]
    output: str


class FFmpegEncoder:
    def __init__(
        self,
        binary: str = "ffmpeg",
        segment_seconds: int = 5,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.binary = binary
        self.segment_seconds = segment_seconds
        self.log = logger or logging.getLogger(__name__)

    def build_command(self, source: str, output_dir: str) -> List[str]:
        cmd = [self.binary, "-i", source]
        for index, (scale, video_bitrate, _) in enumerate(LADDER):
            cmd += [
                f"-filter:v:{index}",
                scale,
                f"-c:v:{index}",
                "libx264",
                f"-b:v:{index}",
                video_bitrate,
                "-g",
                GOP_SIZE,
            ]
        for _ in LADDER:
            cmd += ["-map", "0:v", "-map", "0:a"]
        for index, (_, _, audio_bitrate) in enumerate(LADDER):
            cmd += [f"-c:a:{index}", "aac", f"-b:a:{index}", audio_bitrate]
        var_stream_map = " ".join(f"v:{index},a:{index}" for index in range(len(LADDER)))
        cmd += [
            "-f",
            "hls",
            "-hls_time",
            str(self.segment_seconds),
            "-hls_list_size",
            "0",
            "-hls_flags",
            "independent_segments",
            "-var_stream_map",
            var_stream_map,
            "-master_pl_name",
            MASTER_PLAYLIST,
            "-hls_segment_filename",
            os.path.join(output_dir, "stream_%v", "chunk%05d.ts"),
            os.path.join(output_dir, "stream_%v", "stream.m3u8"),
        ]
        return cmd

    def encode(self, source: str, output_dir: str) -> EncodeResult:
        cmd = self.build_command(source, output_dir)
        self.log.debug("running ffmpeg", extra={"cmd": cmd})
        try:
            proc = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                check=False,
            )
        except OSError as exc:
            return EncodeResult(success=False, returncode=None, output=str(exc))
        return EncodeResult(success=proc.returncode == 0, returncode=proc.returncode, output=proc.stdout or "")
