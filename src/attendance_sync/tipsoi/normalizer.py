"""
TIPSOI API response normalizer.

Converts raw record dicts from the logs endpoint into AttendanceRecord
models. No network or store access here; callers (the orchestrator)
handle fetching and persistence.

Raw record shape (only the first six keys are required):

    {
        "uid": "...",
        "sync_time": "2024-03-01 09:00:05",
        "logged_time": "2024-03-01 09:00:01",
        "type": "card" | "fingerprint" | "face",
        "device_identifier": "...",
        "person_identifier": "...",
        "rfid": "...",
        "location": "...",
        "primary_display_text": "...",
        "secondary_display_text": "..."
    }

A record failing validation is dropped, never the batch.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from attendance_sync.exceptions import ValidationDrop
from attendance_sync.models.attendance import AttendanceRecord, AttendanceType, Project

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    "uid",
    "sync_time",
    "logged_time",
    "type",
    "device_identifier",
    "person_identifier",
)

OPTIONAL_TEXT_FIELDS = (
    "rfid",
    "location",
    "primary_display_text",
    "secondary_display_text",
)

VALID_TYPES = {t.value for t in AttendanceType}


@dataclass
class NormalizedBatch:
    """Valid records plus the drops that were absorbed on the way."""

    records: List[AttendanceRecord] = field(default_factory=list)
    dropped: List[ValidationDrop] = field(default_factory=list)

    @property
    def dropped_count(self) -> int:
        return len(self.dropped)


def _is_blank(value: Any) -> bool:
    """
    A required field is missing when it is absent, None, or a string with no
    non-whitespace characters. Numbers, including 0, are present values.
    """
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def validate_record(raw: Any) -> None:
    """
    Check one raw record against the validity rules.

    Raises:
        ValidationDrop: with the first reason the record is invalid.
    """
    if not isinstance(raw, dict):
        raise ValidationDrop(f"expected an object, got {type(raw).__name__}")

    uid = None if _is_blank(raw.get("uid")) else _text(raw["uid"])
    for name in REQUIRED_FIELDS:
        if _is_blank(raw.get(name)):
            raise ValidationDrop(f"missing required field '{name}'", uid=uid)

    if not isinstance(raw["type"], str) or raw["type"] not in VALID_TYPES:
        raise ValidationDrop(f"unknown attendance type {raw['type']!r}", uid=uid)


def normalize_project(raw: Optional[Dict[str, Any]]) -> Project:
    """Build the batch-level Project; missing keys default to empty strings."""
    raw = raw if isinstance(raw, dict) else {}
    return Project(
        code=_text(raw.get("code")),
        name=_text(raw.get("name")),
        organization=_text(raw.get("organization")),
    )


def normalize_record(raw: Dict[str, Any], project: Project) -> AttendanceRecord:
    """
    Validate and normalize one raw record.

    Args:
        raw: One element of the upstream ``data`` array.
        project: Batch-level project attached to every record.

    Raises:
        ValidationDrop: if the record is invalid.
    """
    validate_record(raw)
    optional = {name: _text(raw.get(name)) for name in OPTIONAL_TEXT_FIELDS}
    return AttendanceRecord(
        uid=_text(raw["uid"]),
        sync_time=_text(raw["sync_time"]),
        logged_time=_text(raw["logged_time"]),
        type=AttendanceType(raw["type"]),
        device_id=_text(raw["device_identifier"]),
        person_id=_text(raw["person_identifier"]),
        project=project,
        **optional,
    )


def normalize_records(
    raw_records: Any, project: Optional[Dict[str, Any]] = None
) -> NormalizedBatch:
    """
    Normalize a whole upstream batch, absorbing per-record failures.

    Args:
        raw_records: The upstream ``data`` array.
        project: The upstream ``project`` object for the batch.

    Returns:
        NormalizedBatch with valid records in input order and the drops.
    """
    batch = NormalizedBatch()
    if not isinstance(raw_records, list):
        logger.warning("Invalid records format - expected a list")
        return batch

    proj = normalize_project(project)
    for raw in raw_records:
        try:
            batch.records.append(normalize_record(raw, proj))
        except ValidationDrop as drop:
            logger.debug("Dropped %s", drop)
            batch.dropped.append(drop)

    logger.info(
        "Processed %d valid records out of %d total",
        len(batch.records),
        len(raw_records),
    )
    if batch.dropped:
        logger.warning("Filtered out %d invalid records", batch.dropped_count)
    return batch
