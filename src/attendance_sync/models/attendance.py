"""Attendance data models: the canonical record and its persisted row."""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from sqlmodel import Field, SQLModel

# Persisted column order. Row 1 of the store holds these; data starts at row 2.
SHEET_HEADERS = [
    "UID",
    "Sync Time",
    "Logged Time",
    "Type",
    "Device ID",
    "Location",
    "Person ID",
    "RFID",
    "Primary Display",
    "Secondary Display",
    "Project Code",
    "Project Name",
    "Organization",
]


class AttendanceType(str, Enum):
    CARD = "card"
    FINGERPRINT = "fingerprint"
    FACE = "face"


class Project(BaseModel):
    """Batch-level project descriptor returned alongside the records."""

    model_config = ConfigDict(frozen=True)

    code: str = ""
    name: str = ""
    organization: str = ""


class AttendanceRecord(BaseModel):
    """One validated, normalized access event. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    uid: str
    sync_time: str
    logged_time: str
    type: AttendanceType
    device_id: str
    person_id: str
    rfid: str = ""
    location: str = ""
    primary_display_text: str = ""
    secondary_display_text: str = ""
    project: Project = Project()

    def to_row(self) -> List[str]:
        """Render as a store row, in SHEET_HEADERS order."""
        return [
            self.uid,
            self.sync_time,
            self.logged_time,
            self.type.value,
            self.device_id,
            self.location,
            self.person_id,
            self.rfid,
            self.primary_display_text,
            self.secondary_display_text,
            self.project.code,
            self.project.name,
            self.project.organization,
        ]


class AttendanceRow(SQLModel, table=True):
    """
    SQL rendition of one store row (used by the SQL backend).

    Column order mirrors SHEET_HEADERS; the autoincrement id preserves
    append order.
    """

    __tablename__ = "attendance_row"

    id: Optional[int] = Field(default=None, primary_key=True)
    uid: str = Field(unique=True, index=True)
    sync_time: str = ""
    logged_time: str = ""
    type: str = ""
    device_id: str = ""
    location: str = ""
    person_id: str = ""
    rfid: str = ""
    primary_display_text: str = ""
    secondary_display_text: str = ""
    project_code: str = ""
    project_name: str = ""
    organization: str = ""


# AttendanceRow field names, aligned with SHEET_HEADERS positions.
ROW_FIELDS = [
    "uid",
    "sync_time",
    "logged_time",
    "type",
    "device_id",
    "location",
    "person_id",
    "rfid",
    "primary_display_text",
    "secondary_display_text",
    "project_code",
    "project_name",
    "organization",
]
