from __future__ import annotations
import logging
from bisect import insort
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, List, Optional
from urllib.parse import quote, unquote

from models.records import VoltageSample
from settings import get_settings

logger = logging.getLogger(__name__)

_SUFFIX = ".jsonl"


class SampleLog:
    """Append-only voltage sample log, one JSON-lines file per device."""

    def __init__(self, name: str = "samples", root_path: Optional[Path] = None) -> None:
        self.name = name
        self._samples: Dict[str, List[VoltageSample]] = {}
        self._next_id = 1
        self.root_path = root_path
        self._lock = Lock()
        if root_path:
            root_path.mkdir(parents=True, exist_ok=True)
            self._load_existing()

    def append(
        self,
        device_id: str,
        voltage: float,
        is_high: bool,
        timestamp: datetime,
    ) -> VoltageSample:
        with self._lock:
            sample = VoltageSample(
                id=self._next_id,
                device_id=device_id,
                voltage=voltage,
                is_high=is_high,
                timestamp=timestamp,
            )
            if self.root_path:
                path = self._path_for(device_id)
                with path.open("a", encoding="utf-8") as handle:
                    handle.write(sample.model_dump_json() + "\n")
            self._next_id += 1
            insort(self._samples.setdefault(device_id, []), sample, key=VoltageSample.sort_key)
            return sample

    def newest_first(
        self, device_id: str, limit: Optional[int] = None, offset: int = 0
    ) -> list[VoltageSample]:
        """Return samples ordered by timestamp, then id, newest first."""

        with self._lock:
            ordered = self._samples.get(device_id, [])
            end = len(ordered) - offset
            if end <= 0:
                return []
            start = 0 if limit is None else max(end - limit, 0)
            window = ordered[start:end]
        window.reverse()
        return window

    def high_samples(self, limit: int) -> list[VoltageSample]:
        with self._lock:
            candidates = [
                sample
                for samples in self._samples.values()
                for sample in samples
                if sample.is_high
            ]
        candidates.sort(key=VoltageSample.sort_key, reverse=True)
        return candidates[:limit]

    def _path_for(self, device_id: str) -> Path:
        assert self.root_path is not None
        return self.root_path / f"{quote(device_id, safe='')}{_SUFFIX}"

    def _load_existing(self) -> None:
        assert self.root_path is not None
        highest = 0
        for path in sorted(self.root_path.glob(f"*{_SUFFIX}")):
            device_id = unquote(path.name[: -len(_SUFFIX)])
            samples: List[VoltageSample] = []
            with path.open("r", encoding="utf-8") as handle:
                for line_number, line in enumerate(handle, start=1):
                    if not line.strip():
                        continue
                    try:
                        sample = VoltageSample.model_validate_json(line)
                    except ValueError as exc:
                        logger.warning(
                            "Skipping unreadable sample line %s:%d",
                            path.name,
                            line_number,
                            extra={"device_id": device_id, "reason": str(exc)},
                        )
                        continue
                    samples.append(sample)
                    highest = max(highest, sample.id)
            samples.sort(key=VoltageSample.sort_key)
            self._samples[device_id] = samples
        self._next_id = highest + 1


@lru_cache
def build_default_log(root_path: Optional[str] = None) -> SampleLog:
    settings = get_settings()
    log_root = settings.sample_log_root if root_path is None else root_path
    path = Path(log_root) if log_root else None
    return SampleLog(root_path=path)
