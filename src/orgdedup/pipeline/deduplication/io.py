"""Input/output helpers for the deduplication pipeline."""

from __future__ import annotations

import json
import os
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any, Callable, Iterator, List, Sequence, TextIO

from orgdedup.entities.core import Organisation

from .processor import DeduplicationResult


def _iter_jsonl(path: Path) -> Iterator[dict]:
    with path.open("r", encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            if not line.strip():
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError as exc:
                raise ValueError(f"{path}:{line_number}: invalid JSON record") from exc


def load_records(path: str | Path) -> List[Organisation]:
    """Load organisation records from a JSONL file or a ``.json`` array file."""

    source = Path(path)
    if source.suffix.lower() == ".json":
        with source.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
        if not isinstance(payload, list):
            raise ValueError(f"{source} must contain a JSON array of records")
        return [Organisation.model_validate(item) for item in payload]
    return [Organisation.model_validate(item) for item in _iter_jsonl(source)]


def _atomic_write(
    destination: str | Path,
    writer: Callable[[TextIO], None],
    *,
    encoding: str = "utf-8",
) -> Path:
    """Write using a temporary file before atomically replacing the destination."""

    path = Path(destination).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)

    tmp_path: Path | None = None
    tmp_handle = NamedTemporaryFile(
        mode="w",
        encoding=encoding,
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
    )
    try:
        tmp_path = Path(tmp_handle.name)
        try:
            writer(tmp_handle)
            tmp_handle.flush()
            os.fsync(tmp_handle.fileno())
        finally:
            tmp_handle.close()
        os.replace(tmp_path, path)
    except BaseException:
        if tmp_path is not None:
            tmp_path.unlink(missing_ok=True)
        raise
    return path


def write_records(records: Sequence[Organisation], destination: str | Path) -> Path:
    """Write records to JSONL, one record per line."""

    def _writer(handle: TextIO) -> None:
        for record in records:
            handle.write(json.dumps(record.model_dump(mode="json"), sort_keys=True))
            handle.write("\n")

    return _atomic_write(destination, _writer)


def write_result(
    result: DeduplicationResult,
    destination: str | Path,
    *,
    metadata: dict[str, Any] | None = None,
) -> Path:
    """Write the full deduplication result as one JSON document."""

    payload = result.model_dump(mode="json")
    if metadata:
        payload["metadata"] = metadata

    def _writer(handle: TextIO) -> None:
        handle.write(json.dumps(payload, indent=2, sort_keys=True) + "\n")

    return _atomic_write(destination, _writer)


__all__ = ["load_records", "write_records", "write_result"]
