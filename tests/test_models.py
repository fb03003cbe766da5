import pytest

from hls_service.models.api import VideoInfo
from hls_service.models.domain import TranscodeJob, TranscodeStatus, transcode_dir_for


@pytest.mark.parametrize(
    "name,expected",
    [("a.mp4", "a"), ("movie.final.mkv", "movie.final"), ("Trip 2024.MOV", "Trip 2024"), ("noext", "noext")],
)
def test_transcode_dir_strips_last_extension(name, expected):
    assert transcode_dir_for(name) == expected


def test_stream_url_only_for_completed_jobs():
    job = TranscodeJob.start("a.mp4")
    assert job.stream_url is None
    job.status = TranscodeStatus.FAILED
    assert job.stream_url is None
    job.status = TranscodeStatus.COMPLETED
    assert job.stream_url == "/hls/a/master.m3u8"


def test_video_info_from_job():
    assert VideoInfo.from_job("b.mp4", None).model_dump(exclude_none=True) == {"name": "b.mp4", "transcoded": False}
    info = VideoInfo.from_job("a.mp4", TranscodeJob.start("a.mp4"))
    assert info.transcoded is False
    assert info.status == TranscodeStatus.PROCESSING
    assert info.transcode_dir == "a"
    assert info.stream_url is None
