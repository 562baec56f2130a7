"""Row-store contract shared by the Google Sheets and SQL backends."""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Set


class RowStore(ABC):
    """
    A row-oriented table: header in row 1, data rows below, dedup keys in
    the first column.

    Implementations raise StoreError for any remote failure.
    """

    @abstractmethod
    async def read_keys(self) -> Set[str]:
        """Return every non-empty key in the first column, header excluded."""

    @abstractmethod
    async def append_rows(self, rows: List[List[str]]) -> None:
        """Append rows after the last data row, preserving order."""

    @abstractmethod
    async def read_header(self) -> List[str]:
        """Return the header row, or an empty list if there is none."""

    @abstractmethod
    async def write_header(self, headers: List[str]) -> None:
        ...

    @abstractmethod
    async def clear_rows(self) -> None:
        """Delete all data rows, keeping the header."""

    @abstractmethod
    async def describe(self) -> Dict[str, Any]:
        ...
