"""Persist crawl results as a single JSON document."""

from __future__ import annotations

import json
import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, List, Union

from .document import DocumentRecord, DocumentReference
from .errors import SerializationError

LOGGER = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


def _target_mode(path: Path) -> int:
    """Mode of the file being replaced, else the umask default for a new file."""
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def record_to_dict(record: DocumentRecord) -> Dict[str, Any]:
    """Convert a record to its JSON shape; optional keys only when set."""
    data: Dict[str, Any] = {
        "id": record.reference.id,
        "title": record.reference.title,
        "url": record.reference.url,
        "sections": dict(record.sections),
    }
    if record.page_title is not None:
        data["pageTitle"] = record.page_title
    if record.full_text is not None:
        data["fullText"] = record.full_text
    if record.fetch_error is not None:
        data["fetchError"] = record.fetch_error
    return data


def record_from_dict(data: Dict[str, Any]) -> DocumentRecord:
    return DocumentRecord(
        reference=DocumentReference(
            id=str(data["id"]),
            title=str(data["title"]),
            url=str(data["url"]),
        ),
        sections={str(k): str(v) for k, v in (data.get("sections") or {}).items()},
        fetch_error=data.get("fetchError"),
        page_title=data.get("pageTitle"),
        full_text=data.get("fullText"),
    )


def dumps_result(records: Iterable[DocumentRecord]) -> str:
    payload = [record_to_dict(record) for record in records]
    return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"


def write_result(records: Iterable[DocumentRecord], destination: PathLike) -> Path:
    """Write ``records`` to ``destination`` atomically.

    The JSON is written to a temporary file in the destination directory,
    flushed to disk and moved over the destination with ``os.replace``. A
    failure at any point leaves the previous file (if any) untouched.

    Raises:
        SerializationError: If the records cannot be encoded or written.
    """
    path = Path(destination).expanduser()
    try:
        payload = dumps_result(records)
    except (TypeError, ValueError) as exc:
        raise SerializationError(
            f"Could not encode crawl result: {exc}", stage="write", url=str(path)
        ) from exc

    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as fh:
            tmp_name = fh.name
            fh.write(payload)
            fh.flush()
            os.fsync(fh.fileno())
        os.chmod(tmp_name, _target_mode(path))
        os.replace(tmp_name, path)
        tmp_name = None
    except OSError as exc:
        raise SerializationError(
            f"Could not write {path}: {exc}", stage="write", url=str(path)
        ) from exc
    finally:
        if tmp_name is not None:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass

    LOGGER.info("Wrote %s", path)
    return path


def read_result(source: PathLike) -> List[DocumentRecord]:
    """Load records previously written by :func:`write_result`."""
    with open(Path(source).expanduser(), "r", encoding="utf-8") as fh:
        data = json.load(fh)
    return [record_from_dict(entry) for entry in data]
