import threading
from pathlib import Path

import pytest

from hls_service.clients.ffmpeg import EncodeResult
from hls_service.config import Settings
from hls_service.queue.queue import LocalQueue
from hls_service.services.transcode_service import TranscodeService
from hls_service.storage.repository import TranscodeJobRepository


class FakeEncoder:
    """Stands in for ffmpeg: records calls, optionally blocks, writes a tiny HLS tree on success."""

    def __init__(self, succeed: bool = True, block: bool = False) -> None:
        self.succeed = succeed
        self.calls: list[tuple[str, str]] = []
        self.release = threading.Event()
        self.started = threading.Event()
        if not block:
            self.release.set()

    def encode(self, source: str, output_dir: str) -> EncodeResult:
        self.calls.append((source, output_dir))
        self.started.set()
        self.release.wait(5)
        if not self.succeed:
            return EncodeResult(success=False, returncode=1, output="Invalid data found when processing input")
        out = Path(output_dir)
        (out / "stream_0").mkdir(parents=True, exist_ok=True)
        (out / "master.m3u8").write_text("#EXTM3U\n#EXT-X-STREAM-INF:BANDWIDTH=300000\nstream_0/stream.m3u8\n")
        (out / "stream_0" / "chunk00000.ts").write_bytes(b"\x47" * 188)
        return EncodeResult(success=True, returncode=0, output="")


class RecordingQueue:
    def __init__(self) -> None:
        self.names: list[str] = []

    def enqueue(self, name: str) -> None:
        self.names.append(name)

    def active(self) -> list[str]:
        return []


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        videos_dir=str(tmp_path / "videos"),
        transcoded_dir=str(tmp_path / "transcoded"),
        state_file=str(tmp_path / "state" / "transcode_mappings.json"),
    )


@pytest.fixture
def encoder() -> FakeEncoder:
    return FakeEncoder()


@pytest.fixture
def service(settings: Settings, encoder: FakeEncoder) -> TranscodeService:
    svc = TranscodeService(repo=TranscodeJobRepository(), settings=settings, encoder=encoder)
    svc.startup()
    svc.bind_queue(LocalQueue(processor=svc.process_job))
    return svc


def add_video(settings: Settings, name: str, data: bytes = b"fake video") -> Path:
    path = Path(settings.videos_dir) / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path
