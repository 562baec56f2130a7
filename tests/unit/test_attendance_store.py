"""Tests for AttendanceStore duplicate filtering."""
from unittest.mock import AsyncMock

import pytest

from attendance_sync.exceptions import StoreError
from attendance_sync.models.attendance import SHEET_HEADERS
from attendance_sync.store.attendance_store import AttendanceStore
from attendance_sync.tipsoi.normalizer import normalize_records

from conftest import PROJECT, make_raw


def records(*uids):
    return normalize_records([make_raw(u) for u in uids], PROJECT).records


def make_backend(keys=(), header=None):
    backend = AsyncMock()
    backend.read_keys = AsyncMock(return_value=set(keys))
    backend.read_header = AsyncMock(return_value=list(header or []))
    return backend


class TestAppendNew:
    @pytest.mark.asyncio
    async def test_appends_all_when_store_empty(self, store):
        assert await store.append_new(records("a", "b", "c")) == 3
        assert await store.backend.read_keys() == {"a", "b", "c"}

    @pytest.mark.asyncio
    async def test_second_append_adds_only_unseen(self, store):
        await store.append_new(records("a", "b", "c"))
        assert await store.append_new(records("b", "c", "d")) == 1
        assert await store.backend.read_keys() == {"a", "b", "c", "d"}

    @pytest.mark.asyncio
    async def test_repeated_append_is_noop(self, store):
        await store.append_new(records("a", "b"))
        assert await store.append_new(records("a", "b")) == 0

    @pytest.mark.asyncio
    async def test_duplicate_within_batch_written_once(self):
        backend = make_backend()
        store = AttendanceStore(backend)
        added = await store.append_new(records("a", "b", "a"))
        assert added == 2
        rows = backend.append_rows.call_args.args[0]
        assert [r[0] for r in rows] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_rows_keep_input_order(self):
        backend = make_backend(keys={"b"})
        store = AttendanceStore(backend)
        await store.append_new(records("c", "b", "a"))
        rows = backend.append_rows.call_args.args[0]
        assert [r[0] for r in rows] == ["c", "a"]

    @pytest.mark.asyncio
    async def test_empty_input_does_not_touch_backend(self):
        backend = make_backend()
        store = AttendanceStore(backend)
        assert await store.append_new([]) == 0
        backend.read_keys.assert_not_awaited()
        backend.append_rows.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_nothing_new_skips_write(self):
        backend = make_backend(keys={"a", "b"})
        store = AttendanceStore(backend)
        assert await store.append_new(records("a", "b")) == 0
        backend.append_rows.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_key_read_failure_propagates(self):
        backend = make_backend()
        backend.read_keys.side_effect = StoreError("read failed")
        store = AttendanceStore(backend)
        with pytest.raises(StoreError):
            await store.append_new(records("a"))
        backend.append_rows.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_append_failure_propagates(self):
        backend = make_backend()
        backend.append_rows.side_effect = StoreError("write failed")
        store = AttendanceStore(backend)
        with pytest.raises(StoreError):
            await store.append_new(records("a"))


class TestHeader:
    @pytest.mark.asyncio
    async def test_writes_header_once(self):
        backend = make_backend()
        store = AttendanceStore(backend)
        assert await store.ensure_header() is True
        backend.write_header.assert_awaited_once_with(list(SHEET_HEADERS))

    @pytest.mark.asyncio
    async def test_existing_header_left_alone(self):
        backend = make_backend(header=SHEET_HEADERS)
        store = AttendanceStore(backend)
        assert await store.ensure_header() is False
        backend.write_header.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_idempotent_against_sql_backend(self, store):
        # fixture already wrote the header
        assert await store.ensure_header() is False


class TestClear:
    @pytest.mark.asyncio
    async def test_clear_empties_rows(self, store):
        await store.append_new(records("a", "b"))
        await store.clear()
        assert await store.backend.read_keys() == set()
        assert await store.append_new(records("a")) == 1
