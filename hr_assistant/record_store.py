"""
Record store for leave and WFH requests.

Two interchangeable backends implement the ``RecordStore`` protocol:

- ``InMemoryRecordStore``: seeded from ``data.company_data``; used for demos
  and tests.
- ``SnowflakeRecordStore``: Snowpark DataFrame queries (no raw SQL strings)
  guarded by a circuit breaker.

Every operation returns a dict with ``success``. A domain miss (unknown
email, unknown record id) is ``{"success": False, "error": ...}``. An
infrastructure failure (connection lost, circuit open) raises
``RecordStoreError`` so callers can tell "no such user" apart from "could
not ask".
"""

import asyncio
import copy
import itertools
import logging
import uuid
from datetime import date, datetime, timezone
from typing import Any, Protocol

from snowflake.snowpark import Session
from snowflake.snowpark.exceptions import SnowparkSQLException
from snowflake.snowpark.functions import col, lit
from snowflake.snowpark.functions import sum as sum_

from data.company_data import MOCK_EMPLOYEES, SEED_LEAVE_RECORDS, get_leave_allowances
from hr_assistant.circuit_breaker import CircuitBreaker
from hr_assistant.config import settings
from hr_assistant.date_parser import to_date
from hr_assistant.errors import RecordStoreError

logger = logging.getLogger(__name__)

LEAVE_PENDING_STATUS = "Pending Approval"
WFH_DEFAULT_STATUS = "Approved"
INACTIVE_STATUSES = frozenset({"rejected", "cancelled"})


class RecordStore(Protocol):
    """Operations the conversation layer needs from the record store."""

    async def create_leave_record(self, payload: dict[str, Any]) -> dict[str, Any]: ...

    async def create_wfh_record(self, payload: dict[str, Any]) -> dict[str, Any]: ...

    async def check_leave_overlap(self, employee: str, start_date: str, end_date: str) -> dict[str, Any]: ...

    async def check_leave_balance(self, email: str, leave_type: str, days: float) -> dict[str, Any]: ...

    async def lookup_user_by_email(self, email: str) -> dict[str, Any]: ...

    async def get_record(self, record_id: str) -> dict[str, Any]: ...

    async def update_record_status(self, record_id: str, status: str) -> dict[str, Any]: ...

    async def list_requests(self, employee: str) -> dict[str, Any]: ...

    def get_circuit_breaker_state(self) -> dict | None: ...

    def close(self) -> None: ...


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _overlaps(record: dict[str, Any], start: date, end: date) -> bool:
    record_start = to_date(record.get("start_date"))
    record_end = to_date(record.get("end_date")) or record_start
    return record_start is not None and record_start <= end and record_end >= start


def _balance(total: float, used: float, days: float) -> dict[str, Any]:
    remaining = total - used
    return {
        "success": True,
        "total": total,
        "used": used,
        "remaining": remaining,
        "is_available": remaining >= days,
    }


class InMemoryRecordStore:
    """Dictionary-backed record store seeded with demo data."""

    def __init__(
        self,
        employees: dict[str, dict[str, Any]] | None = None,
        leave_records: list[dict[str, Any]] | None = None,
        allowances: dict[str, float] | None = None,
    ):
        source = MOCK_EMPLOYEES if employees is None else employees
        self.employees = {email.lower(): dict(info) for email, info in source.items()}
        seed = SEED_LEAVE_RECORDS if leave_records is None else leave_records
        self.leave_records: dict[str, dict[str, Any]] = {r["id"]: copy.deepcopy(r) for r in seed}
        self.wfh_records: dict[str, dict[str, Any]] = {}
        self.allowances = dict(allowances) if allowances is not None else get_leave_allowances()
        self._leave_ids = itertools.count(len(self.leave_records) + 1)
        self._wfh_ids = itertools.count(1)
        logger.info(f"In-memory record store ready with {len(self.leave_records)} leave record(s)")

    def _next_id(self, prefix: str, counter: itertools.count, existing: dict) -> str:
        record_id = f"{prefix}_{next(counter)}"
        while record_id in existing:
            record_id = f"{prefix}_{next(counter)}"
        return record_id

    async def create_leave_record(self, payload: dict[str, Any]) -> dict[str, Any]:
        record_id = self._next_id("LEAVE", self._leave_ids, self.leave_records)
        record = {
            **payload,
            "id": record_id,
            "status": LEAVE_PENDING_STATUS,
            "created_at": _now_iso(),
        }
        self.leave_records[record_id] = record
        logger.info(f"Created leave record {record_id} for {payload.get('employee_email')}")
        return {"success": True, "id": record_id, "record": dict(record)}

    async def create_wfh_record(self, payload: dict[str, Any]) -> dict[str, Any]:
        record_id = self._next_id("WFH", self._wfh_ids, self.wfh_records)
        record = {
            **payload,
            "id": record_id,
            "status": WFH_DEFAULT_STATUS,
            "created_at": _now_iso(),
        }
        self.wfh_records[record_id] = record
        logger.info(f"Created WFH record {record_id} for {payload.get('employee_email')}")
        return {"success": True, "id": record_id, "record": dict(record)}

    def _belongs_to(self, record: dict[str, Any], employee: str) -> bool:
        employee = employee.lower()
        return employee in (
            str(record.get("employee_email", "")).lower(),
            str(record.get("employee_name", "")).lower(),
        )

    async def check_leave_overlap(self, employee: str, start_date: str, end_date: str) -> dict[str, Any]:
        start = to_date(start_date)
        end = to_date(end_date) or start
        if start is None:
            return {"success": False, "error": f"Invalid start date: {start_date}"}

        overlapping = [
            dict(record)
            for record in self.leave_records.values()
            if self._belongs_to(record, employee)
            and str(record.get("status", "")).lower() != "rejected"
            and _overlaps(record, start, end)
        ]
        overlapping.sort(key=lambda r: r["start_date"])
        return {"success": True, "has_overlap": bool(overlapping), "overlapping_leaves": overlapping}

    async def check_leave_balance(self, email: str, leave_type: str, days: float) -> dict[str, Any]:
        total = self.allowances.get(leave_type, 0)
        used = sum(
            float(record.get("duration_days") or 0)
            for record in self.leave_records.values()
            if self._belongs_to(record, email)
            and record.get("leave_type") == leave_type
            and str(record.get("status", "")).lower() not in INACTIVE_STATUSES
        )
        return _balance(total, used, days)

    async def lookup_user_by_email(self, email: str) -> dict[str, Any]:
        employee = self.employees.get(email.lower())
        if employee is None:
            return {"success": False, "error": "User not found"}
        return {
            "success": True,
            "user": {"id": employee["employee_id"], "name": employee["name"], "email": employee["email"]},
        }

    async def get_record(self, record_id: str) -> dict[str, Any]:
        record = self.leave_records.get(record_id) or self.wfh_records.get(record_id)
        if record is None:
            return {"success": False, "error": "Record not found"}
        return {"success": True, "record": dict(record)}

    async def update_record_status(self, record_id: str, status: str) -> dict[str, Any]:
        record = self.leave_records.get(record_id) or self.wfh_records.get(record_id)
        if record is None:
            return {"success": False, "error": "Record not found"}
        record["status"] = status
        logger.info(f"Record {record_id} status -> {status}")
        return {"success": True, "record": dict(record)}

    async def list_requests(self, employee: str) -> dict[str, Any]:
        leaves = [
            {**r, "request_type": "leave"} for r in self.leave_records.values() if self._belongs_to(r, employee)
        ]
        wfh = [
            {**r, "request_type": "wfh", "start_date": r["date"], "end_date": r["date"]}
            for r in self.wfh_records.values()
            if self._belongs_to(r, employee)
        ]
        records = sorted(leaves + wfh, key=lambda r: r["start_date"])
        return {"success": True, "records": records}

    def get_circuit_breaker_state(self) -> dict | None:
        return None

    def close(self) -> None:
        pass


def _row_to_dict(row) -> dict[str, Any]:
    """Snowpark rows come back with upper-case keys and date objects."""
    result = {}
    for key, value in row.as_dict().items():
        if isinstance(value, (date, datetime)):
            value = value.isoformat()
        result[key.lower()] = value
    return result


class SnowflakeRecordStore:
    """
    Snowflake-backed record store.

    Snowpark calls are blocking, so each one runs in a worker thread and the
    whole hop is routed through the circuit breaker.

    Tables: EMPLOYEES, LEAVE_REQUESTS, WFH_REQUESTS, LEAVE_ALLOWANCES.
    """

    LEAVE_COLUMNS = [
        "ID",
        "EMPLOYEE_NAME",
        "EMPLOYEE_EMAIL",
        "LEAVE_TYPE",
        "START_DATE",
        "END_DATE",
        "REASON",
        "STATUS",
        "DURATION_DAYS",
        "IS_HALF_DAY",
        "CREATED_AT",
    ]
    WFH_COLUMNS = ["ID", "EMPLOYEE_NAME", "EMPLOYEE_EMAIL", "DATE", "REASON", "STATUS", "CREATED_AT"]

    def __init__(self, session: Session | None = None):
        self.session = session
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.circuit_breaker_failure_threshold,
            timeout=settings.circuit_breaker_timeout,
            name="SnowflakeCircuitBreaker",
        )
        if self.session is None:
            self._initialize_session()

    def _initialize_session(self) -> None:
        connection_params = {
            "account": settings.snowflake_account,
            "user": settings.snowflake_user,
            "password": settings.snowflake_password,
            "warehouse": settings.snowflake_warehouse,
            "database": settings.snowflake_database,
            "schema": settings.snowflake_schema,
        }
        self.session = Session.builder.configs(connection_params).create()
        logger.info("Snowflake session initialized successfully")

    async def _run(self, func, *args) -> Any:
        try:
            return await self.circuit_breaker.call(asyncio.to_thread, func, *args)
        except RecordStoreError:
            raise
        except SnowparkSQLException as e:
            logger.error(f"Snowflake error in {func.__name__}: {e}")
            raise RecordStoreError(f"Snowflake query failed: {func.__name__}") from e
        except Exception as e:
            logger.error(f"Snowflake call {func.__name__} failed: {e}", exc_info=True)
            raise RecordStoreError(f"Record store unavailable: {func.__name__}") from e

    # Blocking Snowpark helpers (run in worker threads)

    def _insert(self, table: str, columns: list[str], values: list[Any]) -> None:
        self.session.create_dataframe([values], schema=columns).write.mode("append").save_as_table(table)

    def _employee_leaves(self, employee: str) -> list[dict[str, Any]]:
        employee = employee.lower()
        rows = (
            self.session.table("LEAVE_REQUESTS")
            .filter((col("EMPLOYEE_EMAIL") == employee) | (col("EMPLOYEE_NAME") == employee))
            .collect()
        )
        return [_row_to_dict(row) for row in rows]

    def _query_overlap(self, employee: str, start_date: str, end_date: str) -> list[dict[str, Any]]:
        rows = (
            self.session.table("LEAVE_REQUESTS")
            .filter(
                ((col("EMPLOYEE_EMAIL") == employee.lower()) | (col("EMPLOYEE_NAME") == employee))
                & (col("STATUS") != "Rejected")
                & (col("START_DATE") <= lit(end_date))
                & (col("END_DATE") >= lit(start_date))
            )
            .sort(col("START_DATE"))
            .collect()
        )
        return [_row_to_dict(row) for row in rows]

    def _query_balance(self, email: str, leave_type: str) -> tuple[float, float]:
        allowance_rows = (
            self.session.table("LEAVE_ALLOWANCES")
            .filter(col("LEAVE_TYPE") == leave_type)
            .select("TOTAL")
            .collect()
        )
        total = float(allowance_rows[0]["TOTAL"]) if allowance_rows else 0.0
        used_rows = (
            self.session.table("LEAVE_REQUESTS")
            .filter(
                (col("EMPLOYEE_EMAIL") == email.lower())
                & (col("LEAVE_TYPE") == leave_type)
                & ~col("STATUS").isin(["Rejected", "Cancelled"])
            )
            .agg(sum_(col("DURATION_DAYS")).alias("USED"))
            .collect()
        )
        used = float(used_rows[0]["USED"] or 0) if used_rows else 0.0
        return total, used

    def _query_employee(self, email: str) -> dict[str, Any] | None:
        rows = (
            self.session.table("EMPLOYEES")
            .select("EMPLOYEE_ID", "NAME", "EMAIL")
            .filter(col("EMAIL") == email.lower())
            .collect()
        )
        return _row_to_dict(rows[0]) if rows else None

    def _query_record(self, record_id: str) -> dict[str, Any] | None:
        table = "WFH_REQUESTS" if record_id.startswith("WFH_") else "LEAVE_REQUESTS"
        rows = self.session.table(table).filter(col("ID") == record_id).collect()
        return _row_to_dict(rows[0]) if rows else None

    def _update_status(self, record_id: str, status: str) -> int:
        table = "WFH_REQUESTS" if record_id.startswith("WFH_") else "LEAVE_REQUESTS"
        result = self.session.table(table).update({"STATUS": lit(status)}, col("ID") == record_id)
        return result.rows_updated

    def _employee_wfh(self, employee: str) -> list[dict[str, Any]]:
        rows = (
            self.session.table("WFH_REQUESTS")
            .filter((col("EMPLOYEE_EMAIL") == employee.lower()) | (col("EMPLOYEE_NAME") == employee))
            .collect()
        )
        return [_row_to_dict(row) for row in rows]

    # RecordStore protocol

    async def create_leave_record(self, payload: dict[str, Any]) -> dict[str, Any]:
        record_id = f"LEAVE_{uuid.uuid4().hex[:12].upper()}"
        record = {**payload, "id": record_id, "status": LEAVE_PENDING_STATUS, "created_at": _now_iso()}
        values = [record.get(column.lower()) for column in self.LEAVE_COLUMNS]
        await self._run(self._insert, "LEAVE_REQUESTS", self.LEAVE_COLUMNS, values)
        logger.info(f"Created leave record {record_id} via Snowpark")
        return {"success": True, "id": record_id, "record": record}

    async def create_wfh_record(self, payload: dict[str, Any]) -> dict[str, Any]:
        record_id = f"WFH_{uuid.uuid4().hex[:12].upper()}"
        record = {**payload, "id": record_id, "status": WFH_DEFAULT_STATUS, "created_at": _now_iso()}
        values = [record.get(column.lower()) for column in self.WFH_COLUMNS]
        await self._run(self._insert, "WFH_REQUESTS", self.WFH_COLUMNS, values)
        logger.info(f"Created WFH record {record_id} via Snowpark")
        return {"success": True, "id": record_id, "record": record}

    async def check_leave_overlap(self, employee: str, start_date: str, end_date: str) -> dict[str, Any]:
        overlapping = await self._run(self._query_overlap, employee, start_date, end_date)
        return {"success": True, "has_overlap": bool(overlapping), "overlapping_leaves": overlapping}

    async def check_leave_balance(self, email: str, leave_type: str, days: float) -> dict[str, Any]:
        total, used = await self._run(self._query_balance, email, leave_type)
        return _balance(total, used, days)

    async def lookup_user_by_email(self, email: str) -> dict[str, Any]:
        employee = await self._run(self._query_employee, email)
        if employee is None:
            return {"success": False, "error": "User not found"}
        return {
            "success": True,
            "user": {"id": employee["employee_id"], "name": employee["name"], "email": employee["email"]},
        }

    async def get_record(self, record_id: str) -> dict[str, Any]:
        record = await self._run(self._query_record, record_id)
        if record is None:
            return {"success": False, "error": "Record not found"}
        return {"success": True, "record": record}

    async def update_record_status(self, record_id: str, status: str) -> dict[str, Any]:
        updated = await self._run(self._update_status, record_id, status)
        if not updated:
            return {"success": False, "error": "Record not found"}
        return await self.get_record(record_id)

    async def list_requests(self, employee: str) -> dict[str, Any]:
        leaves = await self._run(self._employee_leaves, employee)
        wfh = await self._run(self._employee_wfh, employee)
        records = [{**r, "request_type": "leave"} for r in leaves] + [
            {**r, "request_type": "wfh", "start_date": r["date"], "end_date": r["date"]} for r in wfh
        ]
        return {"success": True, "records": sorted(records, key=lambda r: r["start_date"])}

    def get_circuit_breaker_state(self) -> dict | None:
        return self.circuit_breaker.get_state()

    def close(self) -> None:
        if self.session:
            self.session.close()
            logger.info("Snowflake session closed")


def build_record_store():
    """Snowflake when an account is configured, the in-memory demo store otherwise."""
    if settings.snowflake_account:
        return SnowflakeRecordStore()
    logger.info("SNOWFLAKE_ACCOUNT not set; using in-memory record store")
    return InMemoryRecordStore()
