# ABOUTME: Result store for classified records, name roster, backlinks and excluded identifiers
# ABOUTME: Owns the structured-beats-fallback merge rule and atomic, sorted JSON (de)serialization

from __future__ import annotations

import json
import os
import tempfile
from enum import Enum
from pathlib import Path
from typing import Any, TypeVar

from pydantic import TypeAdapter, ValidationError

from acs_database.core.identifiers import sort_key
from acs_database.core.models import AcsRecord, NameRecord
from acs_database.extraction.base import PersistenceError
from acs_database.utils.logging import get_logger

T = TypeVar("T")

DATABASE_FILE = "acs_database.json"
NAMES_FILE = "scp_names.json"
BACKLINKS_FILE = "acs_backlinks.json"
EXCLUDED_FILE = "acs_excluded.json"

_records_adapter = TypeAdapter(dict[str, AcsRecord])
_names_adapter = TypeAdapter(dict[str, NameRecord])
_backlinks_adapter = TypeAdapter(dict[str, list[str]])
_excluded_adapter = TypeAdapter(list[str])

logger = get_logger(__name__)


class MergeResult(str, Enum):
    """What ``ResultDatabase.merge`` did with an incoming record."""

    INSERTED = "inserted"
    UPGRADED = "upgraded"
    KEPT = "kept"


def record_order(record: AcsRecord) -> tuple[tuple[int, int, str], str]:
    return sort_key(record.actual_number or record.identifier), record.identifier


def name_order(record: NameRecord) -> tuple[tuple[int, int, str], str]:
    return sort_key(record.actual_number or record.identifier), record.identifier


class ResultDatabase:
    """In-memory ACS database for one run.

    Only the pipeline driver writes to it; classification tasks hand their results
    back to the driver instead of merging themselves.
    """

    def __init__(
        self,
        records: dict[str, AcsRecord] | None = None,
        excluded: set[str] | None = None,
        names: dict[str, NameRecord] | None = None,
        backlinks: dict[str, set[str]] | None = None,
    ):
        self.records: dict[str, AcsRecord] = dict(records or {})
        self.excluded: set[str] = set(excluded or ())
        self.names: dict[str, NameRecord] = dict(names or {})
        self.backlinks: dict[str, set[str]] = {key: set(ids) for key, ids in (backlinks or {}).items()}

    def __contains__(self, identifier: object) -> bool:
        return identifier in self.records

    def __len__(self) -> int:
        return len(self.records)

    def get(self, identifier: str) -> AcsRecord | None:
        return self.records.get(identifier)

    def merge(self, record: AcsRecord) -> MergeResult:
        """Insert or upgrade one record.

        A record is inserted when its identifier is new. An existing record is only
        replaced by one produced by a strictly stronger detection method, so a
        structured result is never downgraded to a fallback one and equal-strength
        results keep the first record seen.
        """
        current = self.records.get(record.identifier)
        if current is None:
            self.records[record.identifier] = record
            self.excluded.discard(record.identifier)
            return MergeResult.INSERTED

        if record.method.is_stronger_than(current.method):
            logger.info(
                "Upgrading record",
                identifier=record.identifier,
                previous=current.method.value,
                current=record.method.value,
            )
            self.records[record.identifier] = record
            return MergeResult.UPGRADED

        return MergeResult.KEPT

    def exclude(self, identifier: str) -> None:
        """Remember an identifier that was checked and found not to use the ACS."""
        if identifier not in self.records:
            self.excluded.add(identifier)

    def known_identifiers(self) -> set[str]:
        return set(self.records) | self.excluded

    def sorted_records(self) -> dict[str, AcsRecord]:
        return {record.identifier: record for record in sorted(self.records.values(), key=record_order)}

    def sorted_names(self) -> dict[str, NameRecord]:
        return {record.identifier: record for record in sorted(self.names.values(), key=name_order)}

    # --- Loading ---------------------------------------------------------------------
    @classmethod
    def load(cls, output_dir: Path) -> ResultDatabase:
        """Load a prior run's outputs. Missing files load as empty."""
        records = _read(output_dir / DATABASE_FILE, _records_adapter) or {}
        names = _read(output_dir / NAMES_FILE, _names_adapter) or {}
        backlinks = _read(output_dir / BACKLINKS_FILE, _backlinks_adapter) or {}
        excluded = _read(output_dir / EXCLUDED_FILE, _excluded_adapter) or []

        database = cls(
            records=records,
            excluded=set(excluded),
            names=names,
            backlinks={key: set(ids) for key, ids in backlinks.items()},
        )
        logger.debug(
            "Loaded result database",
            output_dir=str(output_dir),
            records=len(database.records),
            names=len(database.names),
            excluded=len(database.excluded),
        )
        return database

    # --- Saving ----------------------------------------------------------------------
    def save_records(self, output_dir: Path) -> Path:
        return _write(output_dir / DATABASE_FILE, _records_adapter.dump_json(self.sorted_records(), indent=2))

    def save_names(self, output_dir: Path) -> Path:
        return _write(output_dir / NAMES_FILE, _names_adapter.dump_json(self.sorted_names(), indent=2))

    def save_backlinks(self, output_dir: Path) -> Path:
        payload = {key: sorted(ids, key=sort_key) for key, ids in sorted(self.backlinks.items())}
        return _write(output_dir / BACKLINKS_FILE, _backlinks_adapter.dump_json(payload, indent=2))

    def save_excluded(self, output_dir: Path) -> Path:
        return _write(output_dir / EXCLUDED_FILE, _excluded_adapter.dump_json(sorted(self.excluded, key=sort_key), indent=2))

    def save(self, output_dir: Path) -> list[Path]:
        """Write every output file that has content, plus the database itself."""
        written = [self.save_records(output_dir)]
        if self.names:
            written.append(self.save_names(output_dir))
        if self.backlinks:
            written.append(self.save_backlinks(output_dir))
        if self.excluded:
            written.append(self.save_excluded(output_dir))
        return written


def _read(path: Path, adapter: TypeAdapter[T]) -> T | None:
    if not path.exists():
        return None
    try:
        return adapter.validate_json(path.read_bytes())
    except (OSError, ValidationError) as e:
        raise PersistenceError(f"Cannot read {path}: {e}") from e


def _write(path: Path, payload: bytes) -> Path:
    """Write through a temp file and ``os.replace`` so a failure never truncates the old file."""
    tmp_name: str | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        with os.fdopen(fd, "wb") as handle:
            handle.write(payload)
            handle.write(b"\n")
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise PersistenceError(f"Cannot write {path}: {e}") from e

    logger.debug("Wrote output file", path=str(path), bytes=len(payload))
    return path


def sort_records(path: Path, field: str = "actual_number") -> int:
    """Re-sort an output file in place by one field of its entries.

    Works on both shapes the tool writes: an object keyed by identifier and a plain
    list of entries. SCP-numbered values come first in numeric order.

    Returns:
        Number of entries sorted
    """
    try:
        data: Any = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise PersistenceError(f"Cannot read {path}: {e}") from e

    def entry_key(entry: Any) -> tuple[int, int, str]:
        value = entry.get(field, "") if isinstance(entry, dict) else entry
        return sort_key(str(value))

    if isinstance(data, dict):
        ordered: Any = dict(sorted(data.items(), key=lambda item: (entry_key(item[1]), item[0])))
    elif isinstance(data, list):
        ordered = sorted(data, key=entry_key)
    else:
        raise PersistenceError(f"{path} holds neither an object nor a list")

    _write(path, json.dumps(ordered, indent=2, ensure_ascii=False).encode("utf-8"))
    return len(ordered)
