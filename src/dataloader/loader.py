import csv
import json
import logging
import os
from collections.abc import Callable, Iterable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from .errors import ConfigurationError
from .models import Record

logger = logging.getLogger(__name__)

KEY_FIELDS = ("Email", "email", "id", "key")

JSON_LINES_SUFFIXES = {".jsonl", ".ndjson"}


@dataclass
class RecordSource:
    count: int
    stream: Iterable[Record]


SourceFactory = Callable[[], RecordSource]


def make_record(data: Mapping[str, Any], index: int) -> Record:
    for name in KEY_FIELDS:
        value = data.get(name)
        if value:
            return Record(key=str(value), data=data)
    return Record(key=f"record-{index}", data=data)


def from_records(records: Iterable[Mapping[str, Any] | Record]) -> RecordSource:
    items = [r if isinstance(r, Record) else make_record(r, i) for i, r in enumerate(records)]
    return RecordSource(count=len(items), stream=iter(items))


# ────────────────────────────────
# File formats
# ────────────────────────────────


@contextmanager
def _reading(path: str):
    """Turn decoding and parsing failures while reading ``path`` into ConfigurationError."""
    try:
        yield
    except UnicodeDecodeError as e:
        raise ConfigurationError(f"{path}: not valid UTF-8 (byte {e.start})") from e
    except csv.Error as e:
        raise ConfigurationError(f"{path}: invalid CSV ({e})") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"{path}: invalid JSON ({e.msg})") from e


def _json_lines(path: str) -> Iterator[dict]:
    with _reading(path), open(path, encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"{path}:{lineno}: invalid JSON ({e.msg})") from e
            if not isinstance(data, dict):
                raise ConfigurationError(f"{path}:{lineno}: expected a JSON object")
            yield data


def _csv_rows(path: str) -> Iterator[dict]:
    with _reading(path), open(path, encoding="utf-8", newline="") as f:
        for row in csv.DictReader(f):
            yield row


def _load_json_lines(path: str) -> RecordSource:
    # Validate and count up front, then stream lazily from disk.
    count = sum(1 for _ in _json_lines(path))
    stream = (make_record(data, i) for i, data in enumerate(_json_lines(path)))
    return RecordSource(count=count, stream=stream)


def _load_json_array(path: str) -> RecordSource:
    with _reading(path), open(path, encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list) or not all(isinstance(d, dict) for d in data):
        raise ConfigurationError(f"{path}: expected a JSON object or an array of objects")
    return from_records(data)


def _load_csv(path: str) -> RecordSource:
    count = sum(1 for _ in _csv_rows(path))
    stream = (make_record(row, i) for i, row in enumerate(_csv_rows(path)))
    return RecordSource(count=count, stream=stream)


def load_records(path: str) -> RecordSource:
    if not os.path.isfile(path):
        raise ConfigurationError(f"Input file not found: {path}")

    suffix = os.path.splitext(path)[1].lower()
    if suffix in JSON_LINES_SUFFIXES:
        source = _load_json_lines(path)
    elif suffix == ".json":
        source = _load_json_array(path)
    elif suffix == ".csv":
        source = _load_csv(path)
    else:
        raise ConfigurationError(
            f"Unsupported input format '{suffix}' (use .jsonl, .ndjson, .json or .csv)"
        )
    logger.info(f"Loaded {source.count} records from {path}")
    return source


def source_factory(path: str) -> SourceFactory:
    """Re-creatable source: every call reopens the file for a fresh pass."""
    load_records(path)
    return lambda: load_records(path)
