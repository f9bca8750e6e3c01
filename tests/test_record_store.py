"""
Tests for the record store backends.
Target: 85% coverage
"""

import asyncio
from unittest.mock import MagicMock, Mock, patch

import pytest

from hr_assistant.errors import CircuitBreakerOpenError, RecordStoreError
from hr_assistant.record_store import (
    LEAVE_PENDING_STATUS,
    WFH_DEFAULT_STATUS,
    InMemoryRecordStore,
    SnowflakeRecordStore,
    build_record_store,
)

JOHN = "john.doe@winfomi.com"

LEAVE_PAYLOAD = {
    "employee_name": "John Doe",
    "employee_email": JOHN,
    "leave_type": "CASUAL",
    "start_date": "2025-12-11",
    "end_date": "2025-12-11",
    "reason": "fever",
    "duration_days": 1,
    "is_half_day": False,
}


def run(coro):
    return asyncio.run(coro)


class TestInMemoryCreate:
    """Test record creation."""

    def test_create_leave_record(self, record_store):
        """Ids continue after the seed data and start pending."""
        result = run(record_store.create_leave_record(LEAVE_PAYLOAD))

        assert result["success"] is True
        assert result["id"] == "LEAVE_2"
        assert result["record"]["status"] == LEAVE_PENDING_STATUS
        assert record_store.leave_records["LEAVE_2"]["reason"] == "fever"

    def test_create_wfh_record(self, record_store):
        result = run(
            record_store.create_wfh_record(
                {"employee_name": "John Doe", "employee_email": JOHN, "date": "2025-12-11", "reason": "Personal"}
            )
        )
        assert result["id"] == "WFH_1"
        assert result["record"]["status"] == WFH_DEFAULT_STATUS


class TestInMemoryQueries:
    """Test overlap, balance and lookup."""

    def test_overlap_found(self, record_store):
        """A day inside LEAVE_1 overlaps."""
        result = run(record_store.check_leave_overlap(JOHN, "2025-12-20", "2025-12-20"))
        assert result["success"] is True
        assert result["has_overlap"] is True
        assert result["overlapping_leaves"][0]["id"] == "LEAVE_1"

    def test_overlap_matches_by_name(self, record_store):
        result = run(record_store.check_leave_overlap("John Doe", "2025-12-22", "2025-12-24"))
        assert result["has_overlap"] is True

    def test_no_overlap_for_other_employee(self, record_store):
        result = run(record_store.check_leave_overlap("priya.sharma@winfomi.com", "2025-12-20", "2025-12-20"))
        assert result["has_overlap"] is False
        assert result["overlapping_leaves"] == []

    def test_overlap_with_invalid_start(self, record_store):
        result = run(record_store.check_leave_overlap(JOHN, "not a date", "2025-12-20"))
        assert result["success"] is False

    def test_balance_counts_active_leaves(self, record_store):
        """LEAVE_1 uses 5 of the 21 annual days."""
        result = run(record_store.check_leave_balance(JOHN, "ANNUAL", 0))
        assert (result["total"], result["used"], result["remaining"]) == (21, 5, 16)
        assert result["is_available"] is True

        assert run(record_store.check_leave_balance(JOHN, "ANNUAL", 17))["is_available"] is False

    def test_cancelled_leave_frees_balance(self, record_store):
        run(record_store.update_record_status("LEAVE_1", "Cancelled"))
        assert run(record_store.check_leave_balance(JOHN, "ANNUAL", 0))["remaining"] == 21

    def test_unknown_leave_type_has_no_allowance(self, record_store):
        assert run(record_store.check_leave_balance(JOHN, "SABBATICAL", 1))["total"] == 0

    def test_lookup_is_case_insensitive(self, record_store):
        result = run(record_store.lookup_user_by_email("John.Doe@Winfomi.com"))
        assert result == {
            "success": True,
            "user": {"id": "E001", "name": "John Doe", "email": JOHN},
        }

    def test_lookup_miss(self, record_store):
        result = run(record_store.lookup_user_by_email("nobody@winfomi.com"))
        assert result == {"success": False, "error": "User not found"}

    def test_custom_directory(self):
        store = InMemoryRecordStore(
            employees={"Asha@Winfomi.com": {"employee_id": "E009", "name": "Asha", "email": "asha@winfomi.com"}},
            leave_records=[],
        )
        assert run(store.lookup_user_by_email("asha@winfomi.com"))["user"]["id"] == "E009"
        assert run(store.create_leave_record(LEAVE_PAYLOAD))["id"] == "LEAVE_1"


class TestInMemoryRecords:
    """Test fetching, status updates and listing."""

    def test_get_record(self, record_store):
        assert run(record_store.get_record("LEAVE_1"))["record"]["leave_type"] == "ANNUAL"
        assert run(record_store.get_record("LEAVE_99")) == {"success": False, "error": "Record not found"}

    def test_update_status(self, record_store):
        result = run(record_store.update_record_status("LEAVE_1", "Rejected"))
        assert result["record"]["status"] == "Rejected"
        assert run(record_store.update_record_status("WFH_9", "Approved"))["success"] is False

    def test_list_requests_sorted_by_start(self, record_store):
        """WFH records are listed with their date as start and end."""
        run(
            record_store.create_wfh_record(
                {"employee_name": "John Doe", "employee_email": JOHN, "date": "2025-12-11", "reason": "Personal"}
            )
        )
        records = run(record_store.list_requests(JOHN))["records"]

        assert [r["request_type"] for r in records] == ["wfh", "leave"]
        assert records[0]["start_date"] == records[0]["end_date"] == "2025-12-11"

    def test_no_circuit_breaker(self, record_store):
        assert record_store.get_circuit_breaker_state() is None


def _row(**values):
    row = MagicMock()
    row.as_dict.return_value = values
    return row


class TestSnowflakeRecordStore:
    """Test the Snowpark backend against a mocked session."""

    @pytest.fixture
    def session(self):
        return Mock()

    @pytest.fixture
    def store(self, session):
        return SnowflakeRecordStore(session=session)

    def test_lookup_user(self, store, session):
        """Rows are lower-cased into the user payload."""
        chain = session.table.return_value.select.return_value.filter.return_value
        chain.collect.return_value = [_row(EMPLOYEE_ID="E001", NAME="John Doe", EMAIL=JOHN)]

        result = run(store.lookup_user_by_email("John.Doe@Winfomi.com"))

        assert result["user"] == {"id": "E001", "name": "John Doe", "email": JOHN}
        session.table.assert_called_with("EMPLOYEES")

    def test_lookup_miss(self, store, session):
        session.table.return_value.select.return_value.filter.return_value.collect.return_value = []
        assert run(store.lookup_user_by_email("x@winfomi.com")) == {"success": False, "error": "User not found"}

    def test_failure_raises_record_store_error(self, store, session):
        """Infrastructure errors never look like a domain miss."""
        session.table.side_effect = RuntimeError("connection lost")

        with pytest.raises(RecordStoreError):
            run(store.lookup_user_by_email(JOHN))
        assert store.get_circuit_breaker_state()["failure_count"] == 1

    def test_open_circuit_blocks_queries(self, store, session):
        session.table.side_effect = RuntimeError("connection lost")
        store.circuit_breaker.failure_threshold = 1

        with pytest.raises(RecordStoreError):
            run(store.lookup_user_by_email(JOHN))
        with pytest.raises(CircuitBreakerOpenError):
            run(store.lookup_user_by_email(JOHN))
        assert session.table.call_count == 1

    def test_create_leave_record_appends_row(self, store, session):
        result = run(store.create_leave_record(LEAVE_PAYLOAD))

        assert result["success"] is True
        assert result["id"].startswith("LEAVE_")
        session.create_dataframe.return_value.write.mode.assert_called_with("append")
        session.create_dataframe.return_value.write.mode.return_value.save_as_table.assert_called_with(
            "LEAVE_REQUESTS"
        )

    def test_update_missing_record(self, store, session):
        session.table.return_value.update.return_value.rows_updated = 0
        assert run(store.update_record_status("LEAVE_X", "Approved"))["success"] is False

    def test_close(self, store, session):
        store.close()
        session.close.assert_called_once()


class TestBuildRecordStore:
    def test_in_memory_without_account(self):
        with patch("hr_assistant.record_store.settings") as mock_settings:
            mock_settings.snowflake_account = None
            assert isinstance(build_record_store(), InMemoryRecordStore)

    def test_snowflake_with_account(self):
        with (
            patch("hr_assistant.record_store.settings") as mock_settings,
            patch("hr_assistant.record_store.SnowflakeRecordStore") as mock_store,
        ):
            mock_settings.snowflake_account = "acme-xy123"
            assert build_record_store() is mock_store.return_value
