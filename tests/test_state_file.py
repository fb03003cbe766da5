import json

import pytest

from hls_service.models.domain import TranscodeJob, TranscodeStatus
from hls_service.storage.state_file import JobStateFile, StateLoadError


def _jobs(count: int) -> dict[str, TranscodeJob]:
    statuses = list(TranscodeStatus)
    jobs = {}
    for index in range(count):
        name = f"video {index}.mp4"
        jobs[name] = TranscodeJob(
            original_name=name,
            transcode_dir=f"video {index}",
            status=statuses[index % len(statuses)],
        )
    return jobs


def test_missing_file_loads_empty(tmp_path):
    assert JobStateFile(tmp_path / "absent.json").load() == {}


@pytest.mark.parametrize("count", [0, 1, 5])
def test_save_then_load_round_trips(tmp_path, count):
    store = JobStateFile(tmp_path / "state.json")
    jobs = _jobs(count)
    store.save(jobs)
    assert store.load() == jobs


def test_saved_layout_matches_mapping_format(tmp_path):
    store = JobStateFile(tmp_path / "state.json")
    store.save({"a.mp4": TranscodeJob.start("a.mp4")})
    assert json.loads(store.path.read_text()) == {
        "a.mp4": {"original_name": "a.mp4", "transcode_dir": "a", "status": "processing"}
    }


def test_save_replaces_previous_contents_without_leftovers(tmp_path):
    store = JobStateFile(tmp_path / "state.json")
    store.save(_jobs(3))
    store.save(_jobs(1))
    assert len(store.load()) == 1
    assert [p.name for p in tmp_path.iterdir()] == ["state.json"]


@pytest.mark.parametrize(
    "content",
    [
        "{not json",
        "[1, 2, 3]",
        json.dumps({"a.mp4": {"original_name": "a.mp4", "transcode_dir": "a", "status": "queued"}}),
        json.dumps({"a.mp4": {"original_name": "a.mp4"}}),
    ],
)
def test_corrupt_file_raises_load_error(tmp_path, content):
    path = tmp_path / "state.json"
    path.write_text(content)
    with pytest.raises(StateLoadError):
        JobStateFile(path).load()


def test_save_failure_raises_os_error(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("")
    with pytest.raises(OSError):
        JobStateFile(blocker / "state.json").save(_jobs(1))
