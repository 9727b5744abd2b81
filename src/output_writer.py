"""
Output Writer - append-only dataset of jobs plus a key-value store for stats
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, List, Union

from models import JobPosting

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 20


def _render_template(template: str) -> str:
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return (template or "").replace("{timestamp}", timestamp)


class DatasetWriter:
    """Appends job records as JSON lines, flushed in bounded batches"""

    def __init__(self, path: Union[str, Path], batch_size: int = DEFAULT_BATCH_SIZE):
        self.path = Path(_render_template(str(path)))
        self.batch_size = max(int(batch_size), 1)
        self.records_written = 0

    @classmethod
    def from_config(cls, config) -> "DatasetWriter":
        return cls(config.get_dataset_path(), batch_size=config.get_batch_size())

    def _ensure_output_dir(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _write_batch(self, batch: List[JobPosting]) -> None:
        self._ensure_output_dir()
        with open(self.path, "a", encoding="utf-8") as f:
            for job in batch:
                f.write(json.dumps(job.to_record(), ensure_ascii=False) + "\n")
        self.records_written += len(batch)
        logger.debug("Dataset batch written: %s records", len(batch))

    def push(self, jobs: Iterable[JobPosting]) -> int:
        """Write jobs in batches; returns how many were written"""
        batch: List[JobPosting] = []
        written = 0
        for job in jobs:
            batch.append(job)
            if len(batch) >= self.batch_size:
                self._write_batch(batch)
                written += len(batch)
                batch = []
        if batch:
            self._write_batch(batch)
            written += len(batch)
        if written:
            logger.info("Saved %s jobs to dataset %s", written, self.path)
        return written


class KeyValueStore:
    """One JSON document per key inside a directory"""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    @classmethod
    def from_config(cls, config) -> "KeyValueStore":
        return cls(config.get_key_value_store_dir())

    def _path_for(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key:
            raise ValueError(f"Invalid key: {key!r}")
        return self.directory / f"{key}.json"

    def set_value(self, key: str, value: Any) -> Path:
        path = self._path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(value, indent=2, ensure_ascii=False), encoding="utf-8")
        logger.info("Stored %s in %s", key, path)
        return path
