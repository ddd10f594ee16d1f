from __future__ import annotations

import json
import os
from typing import Any, Dict

from jobmarket.job_connectors.models import NormalizedJob

UpsertAction = str  # "inserted" | "updated" | "skipped"


class JobSink:
    def upsert(self, job: NormalizedJob) -> UpsertAction:
        raise NotImplementedError

    def close(self) -> None:
        return None


class InMemorySink(JobSink):
    def __init__(self) -> None:
        self.items: Dict[str, NormalizedJob] = {}

    def upsert(self, job: NormalizedJob) -> UpsertAction:
        existing = self.items.get(job.external_id)
        if existing is not None:
            if existing == job:
                return "skipped"
            self.items[job.external_id] = job
            return "updated"
        self.items[job.external_id] = job
        return "inserted"


class JsonlSink(JobSink):
    """Upsert sink that stores jobs as JSON lines keyed by ``external_id``."""

    def __init__(self, path: str) -> None:
        self._path = path
        self._dirty = False
        self._items: Dict[str, Dict[str, Any]] = {}
        self._load_existing()

    def _load_existing(self) -> None:
        if not os.path.exists(self._path):
            return

        with open(self._path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    obj = json.loads(line)
                except json.JSONDecodeError:
                    continue
                external_id = obj.get("external_id") if isinstance(obj, dict) else None
                if isinstance(external_id, str) and external_id:
                    self._items[external_id] = obj

    def upsert(self, job: NormalizedJob) -> UpsertAction:
        # Stored rows are compared without the posting date, which defaults to "now".
        row = job.as_dict()
        existing = self._items.get(job.external_id)
        if existing is not None:
            if _without_date(existing) == _without_date(row):
                return "skipped"
            self._items[job.external_id] = row
            self._dirty = True
            return "updated"

        self._items[job.external_id] = row
        self._dirty = True
        return "inserted"

    def close(self) -> None:
        if not self._dirty:
            return

        os.makedirs(os.path.dirname(self._path) or ".", exist_ok=True)
        tmp_path = f"{self._path}.tmp"

        with open(tmp_path, "w", encoding="utf-8") as f:
            for row in self._items.values():
                f.write(json.dumps(row, ensure_ascii=False, sort_keys=True))
                f.write("\n")

        os.replace(tmp_path, self._path)
        self._dirty = False


class StdoutSink(JobSink):
    def __init__(self) -> None:
        self.count = 0

    def upsert(self, job: NormalizedJob) -> UpsertAction:
        print(json.dumps(job.as_dict(), ensure_ascii=False, sort_keys=True))
        self.count += 1
        return "inserted"


def _without_date(row: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in row.items() if k != "posted_date"}
