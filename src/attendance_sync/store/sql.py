"""
SQL row-store backend (SQLModel).

The header row of the sheet backend maps onto the table schema here:
read_header() reports SHEET_HEADERS once the table exists and write_header()
creates it. Dedup keys live in the unique ``uid`` column.
"""
import logging
from typing import Any, Dict, List, Optional, Set

from sqlalchemy import func, inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, create_engine, select

from attendance_sync.exceptions import StoreError
from attendance_sync.models.attendance import ROW_FIELDS, SHEET_HEADERS, AttendanceRow
from attendance_sync.store.base import RowStore

logger = logging.getLogger(__name__)


def build_engine(database_url: str):
    """Create a SQLModel engine for ``database_url``."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}  # shared with the scheduler thread
    return create_engine(database_url, connect_args=connect_args)


class SqlBackend(RowStore):
    """Row store backed by the ``attendance_row`` table."""

    def __init__(self, engine=None, database_url: Optional[str] = None):
        """
        Args:
            engine: SQLAlchemy engine (tests pass an in-memory SQLite engine).
            database_url: Used to build an engine when ``engine`` is None.
        """
        if engine is None:
            if not database_url:
                raise ValueError("SqlBackend needs an engine or a database_url")
            engine = build_engine(database_url)
        self.engine = engine

    def _table_exists(self) -> bool:
        return inspect(self.engine).has_table(AttendanceRow.__tablename__)

    async def read_keys(self) -> Set[str]:
        try:
            if not self._table_exists():
                return set()
            with Session(self.engine) as s:
                return {uid for uid in s.exec(select(AttendanceRow.uid)).all() if uid}
        except SQLAlchemyError as exc:
            raise StoreError("Database error while reading existing UIDs", details=str(exc)) from exc

    async def append_rows(self, rows: List[List[str]]) -> None:
        try:
            with Session(self.engine) as s:
                for row in rows:
                    s.add(AttendanceRow(**dict(zip(ROW_FIELDS, row))))
                s.commit()
        except SQLAlchemyError as exc:
            raise StoreError("Database error while appending rows", details=str(exc)) from exc

    async def read_header(self) -> List[str]:
        try:
            return list(SHEET_HEADERS) if self._table_exists() else []
        except SQLAlchemyError as exc:
            raise StoreError("Database error while reading the schema", details=str(exc)) from exc

    async def write_header(self, headers: List[str]) -> None:
        try:
            SQLModel.metadata.create_all(self.engine, tables=[AttendanceRow.__table__])
        except SQLAlchemyError as exc:
            raise StoreError("Database error while creating the table", details=str(exc)) from exc
        logger.info("Created table %s", AttendanceRow.__tablename__)

    async def clear_rows(self) -> None:
        try:
            if not self._table_exists():
                return
            with Session(self.engine) as s:
                for row in s.exec(select(AttendanceRow)).all():
                    s.delete(row)
                s.commit()
        except SQLAlchemyError as exc:
            raise StoreError("Database error while clearing rows", details=str(exc)) from exc

    async def describe(self) -> Dict[str, Any]:
        try:
            row_count = 0
            if self._table_exists():
                with Session(self.engine) as s:
                    row_count = s.exec(select(func.count()).select_from(AttendanceRow)).one()
        except SQLAlchemyError as exc:
            raise StoreError("Database error while reading metadata", details=str(exc)) from exc
        return {
            "backend": "sql",
            "url": self.engine.url.render_as_string(hide_password=True),
            "table": AttendanceRow.__tablename__,
            "row_count": row_count,
        }
