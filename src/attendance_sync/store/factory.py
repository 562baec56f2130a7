"""Row-store backend selection from settings."""
from attendance_sync.config import Settings
from attendance_sync.store.base import RowStore


def build_backend(settings: Settings) -> RowStore:
    """
    Build the backend named by ``settings.store_backend``.

    Raises:
        ValueError: for an unknown backend name.
    """
    backend = settings.store_backend.lower()
    if backend == "sheets":
        from attendance_sync.store.sheets import SheetsBackend

        return SheetsBackend(
            spreadsheet_id=settings.google_sheets_id,
            key_path=settings.google_private_key_path,
        )
    if backend == "sql":
        from attendance_sync.store.sql import SqlBackend

        return SqlBackend(database_url=settings.database_url)
    raise ValueError(f"Unknown STORE_BACKEND: {settings.store_backend!r}")
