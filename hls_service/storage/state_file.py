from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Dict, Mapping

from pydantic import ValidationError

from hls_service.models.domain import TranscodeJob


class StateLoadError(Exception):
    """The state file exists but could not be read or parsed."""


class JobStateFile:
    """Whole-registry JSON snapshot on disk, keyed by source video filename."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)

    def load(self) -> Dict[str, TranscodeJob]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            raise StateLoadError(f"cannot read {self.path}: {exc}") from exc
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StateLoadError(f"invalid JSON in {self.path}: {exc}") from exc
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise StateLoadError(f"expected a JSON object in {self.path}")
        try:
            return {name: TranscodeJob.model_validate(entry) for name, entry in data.items()}
        except ValidationError as exc:
            raise StateLoadError(f"invalid job record in {self.path}: {exc}") from exc

    def save(self, jobs: Mapping[str, TranscodeJob]) -> None:
        payload = {name: job.model_dump(mode="json") for name, job in jobs.items()}
        directory = self.path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
                f.write("\n")
            os.chmod(tmp, 0o644)
            os.replace(tmp, self.path)
        except BaseException:
            try:
                os.unlink(tmp)
            except FileNotFoundError:
                pass
            raise
