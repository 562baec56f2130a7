"""
Google Sheets row-store backend.

The Sheets API client (google-api-python-client) is synchronous; every call
runs in the default thread pool executor so it doesn't block the asyncio
event loop.

Authentication uses a service-account JSON key file. The spreadsheet must
be shared with the service account's email address.
"""
import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Set

from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from httplib2 import HttpLib2Error

from attendance_sync.exceptions import StoreError
from attendance_sync.store.base import RowStore

logger = logging.getLogger(__name__)

SHEETS_SCOPE = "https://www.googleapis.com/auth/spreadsheets"

HEADER_RANGE = "A1:M1"
KEY_RANGE = "A:A"
APPEND_RANGE = "A:M"
DATA_RANGE = "A2:Z"


class SheetsBackend(RowStore):
    """
    Row store backed by one Google spreadsheet (its first sheet).

    Call connect() before any data methods, or let the first call do it.
    """

    def __init__(self, spreadsheet_id: str, key_path: str, service=None):
        """
        Args:
            spreadsheet_id: ID from the spreadsheet URL.
            key_path: Path to the service-account JSON key file.
            service: Pre-built Sheets API resource (tests inject a MagicMock).
        """
        self.spreadsheet_id = spreadsheet_id
        self.key_path = key_path
        self._service = service

    @property
    def connected(self) -> bool:
        return self._service is not None

    async def connect(self) -> None:
        """
        Load the service-account key and build the Sheets API resource.

        Raises:
            StoreError: if the key file is missing or unusable.
        """
        if self._service is None:
            await self._in_executor(self._connect_sync)

    def _connect_sync(self) -> None:
        if not Path(self.key_path).exists():
            raise StoreError(
                "Google service account key file not found", details=self.key_path
            )
        try:
            credentials = service_account.Credentials.from_service_account_file(
                self.key_path, scopes=[SHEETS_SCOPE]
            )
            self._service = build(
                "sheets", "v4", credentials=credentials, cache_discovery=False
            )
        except (GoogleAuthError, ValueError) as exc:
            raise StoreError("Failed to initialize Google Sheets client", details=str(exc)) from exc
        logger.info("Google Sheets client initialized")

    async def _in_executor(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: fn(*args))

    async def _run(self, description: str, build_request):
        """
        Build and execute one Sheets API request in the thread pool.

        Args:
            description: Human-readable action, used in the StoreError.
            build_request: Callable taking the spreadsheets() resource
                and returning an executable request.
        """
        await self.connect()

        def call():
            return build_request(self._service.spreadsheets()).execute()

        try:
            return await self._in_executor(call)
        except HttpError as exc:
            raise StoreError(f"Google Sheets error while {description}", details=str(exc)) from exc
        except (GoogleAuthError, HttpLib2Error, OSError) as exc:
            raise StoreError(f"Google Sheets unreachable while {description}", details=str(exc)) from exc

    # ─── RowStore ─────────────────────────────────────────────────────────────

    async def read_keys(self) -> Set[str]:
        response = await self._run(
            "reading existing UIDs",
            lambda sheets: sheets.values().get(
                spreadsheetId=self.spreadsheet_id, range=KEY_RANGE
            ),
        )
        values = response.get("values") or []
        # Row 1 is the header
        return {row[0] for row in values[1:] if row and row[0]}

    async def append_rows(self, rows: List[List[str]]) -> None:
        await self._run(
            "appending rows",
            lambda sheets: sheets.values().append(
                spreadsheetId=self.spreadsheet_id,
                range=APPEND_RANGE,
                valueInputOption="RAW",
                insertDataOption="INSERT_ROWS",
                body={"values": rows},
            ),
        )

    async def read_header(self) -> List[str]:
        response = await self._run(
            "reading the header row",
            lambda sheets: sheets.values().get(
                spreadsheetId=self.spreadsheet_id, range=HEADER_RANGE
            ),
        )
        values = response.get("values") or []
        return list(values[0]) if values else []

    async def write_header(self, headers: List[str]) -> None:
        await self._run(
            "writing the header row",
            lambda sheets: sheets.values().update(
                spreadsheetId=self.spreadsheet_id,
                range=HEADER_RANGE,
                valueInputOption="RAW",
                body={"values": [headers]},
            ),
        )

    async def clear_rows(self) -> None:
        await self._run(
            "clearing data rows",
            lambda sheets: sheets.values().clear(
                spreadsheetId=self.spreadsheet_id, range=DATA_RANGE, body={}
            ),
        )

    async def describe(self) -> Dict[str, Any]:
        response = await self._run(
            "reading spreadsheet metadata",
            lambda sheets: sheets.get(spreadsheetId=self.spreadsheet_id),
        )
        return {
            "backend": "sheets",
            "title": (response.get("properties") or {}).get("title"),
            "sheet_count": len(response.get("sheets") or []),
            "url": f"https://docs.google.com/spreadsheets/d/{self.spreadsheet_id}",
        }
