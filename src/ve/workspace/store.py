"""
ValuationStore: SQLite storage for company valuation records.

Each record holds:
- Unique opaque ID (val_<uuid7>)
- Company and owning user
- Method (dcf | multiples) and status (draft | completed)
- Raw method inputs as last saved (JSON)
- Enterprise / equity value and sensitivity data once completed
- The full result contract (JSON)
"""

from __future__ import annotations

import json
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Any

from ve.types import (
    ValuationMethod,
    ValuationRecord,
    ValuationStatus,
    generate_id,
    utc_now,
)

_UPDATABLE_COLUMNS = {
    "inputs": "inputs_json",
    "notes": "notes",
    "status": "status",
    "enterprise_value": "enterprise_value",
    "equity_value": "equity_value",
    "sensitivity_data": "sensitivity_json",
    "result": "result_json",
}
_JSON_COLUMNS = {"inputs_json", "sensitivity_json", "result_json"}


class ValuationStore:
    """SQLite-backed store for valuation records.

    One connection per store, shared across threads; writes are serialized
    with a lock.
    """

    def __init__(self, db_path: Path | str) -> None:
        """Initialize ValuationStore.

        Args:
            db_path: Path to the SQLite file (":memory:" for an in-memory store).
        """
        self.db_path = db_path if db_path == ":memory:" else Path(db_path)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._initialized = False

    def init(self) -> None:
        """Initialize the database schema.

        Creates tables if they don't exist. Safe to call multiple times.
        """
        if self._initialized:
            return

        with self._lock:
            if isinstance(self.db_path, Path):
                self.db_path.parent.mkdir(parents=True, exist_ok=True)

            conn = self._get_conn()
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS valuations (
                    id TEXT PRIMARY KEY,
                    company_id INTEGER NOT NULL,
                    user_id INTEGER,
                    method TEXT NOT NULL,
                    status TEXT NOT NULL,
                    inputs_json TEXT NOT NULL,
                    notes TEXT,
                    enterprise_value REAL,
                    equity_value REAL,
                    sensitivity_json TEXT,
                    result_json TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_valuations_company
                ON valuations(company_id, created_at)
            """)

            conn.commit()
            self._initialized = True

    def _get_conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(
                str(self.db_path),
                timeout=30.0,
                isolation_level="DEFERRED",
                check_same_thread=False,
            )
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                self._initialized = False

    def create_valuation(
        self,
        company_id: int,
        method: ValuationMethod | str,
        inputs: dict[str, Any],
        notes: str | None = None,
        user_id: int | None = None,
    ) -> ValuationRecord:
        """Store a new draft valuation.

        Args:
            company_id: Company being valued.
            method: Valuation method.
            inputs: Raw method inputs.
            notes: Optional free-text notes.
            user_id: Owning user, if known.

        Returns:
            The stored record.
        """
        self.init()

        now = utc_now()
        record = ValuationRecord(
            id=generate_id("val"),
            company_id=company_id,
            user_id=user_id,
            method=ValuationMethod(method),
            status=ValuationStatus.DRAFT,
            inputs=dict(inputs),
            notes=notes,
            created_at=now,
            updated_at=now,
        )

        with self._lock:
            conn = self._get_conn()
            conn.execute(
                """
                INSERT INTO valuations (
                    id, company_id, user_id, method, status, inputs_json, notes,
                    created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.company_id,
                    record.user_id,
                    record.method.value,
                    record.status.value,
                    json.dumps(record.inputs, default=str),
                    record.notes,
                    now.isoformat(),
                    now.isoformat(),
                ),
            )
            conn.commit()

        return record

    def get_valuation(self, valuation_id: str) -> ValuationRecord | None:
        """Get a valuation by ID.

        Args:
            valuation_id: The valuation ID.

        Returns:
            The record, or None if not found.
        """
        self.init()

        with self._lock:
            row = self._get_conn().execute(
                "SELECT * FROM valuations WHERE id = ?",
                (valuation_id,),
            ).fetchone()

        return self._row_to_record(row) if row is not None else None

    def list_company_valuations(self, company_id: int) -> list[ValuationRecord]:
        """List a company's valuations, newest first."""
        self.init()

        with self._lock:
            rows = self._get_conn().execute(
                """
                SELECT * FROM valuations WHERE company_id = ?
                ORDER BY created_at DESC, id DESC
                """,
                (company_id,),
            ).fetchall()

        return [self._row_to_record(row) for row in rows]

    def get_latest_company_valuation(self, company_id: int) -> ValuationRecord | None:
        """Get the most recently created valuation for a company."""
        valuations = self.list_company_valuations(company_id)
        return valuations[0] if valuations else None

    def update_valuation(self, valuation_id: str, **fields: Any) -> ValuationRecord | None:
        """Update selected fields of a valuation.

        Args:
            valuation_id: The valuation ID.
            **fields: Any of inputs, notes, status, enterprise_value,
                equity_value, sensitivity_data, result.

        Returns:
            The updated record, or None if not found.

        Raises:
            ValueError: If an unknown field is given.
        """
        unknown = set(fields) - set(_UPDATABLE_COLUMNS)
        if unknown:
            raise ValueError(f"Cannot update valuation fields: {sorted(unknown)}")

        self.init()

        assignments: list[str] = []
        params: list[Any] = []
        for name, value in fields.items():
            column = _UPDATABLE_COLUMNS[name]
            if column in _JSON_COLUMNS:
                value = json.dumps(value, default=str) if value is not None else None
            elif isinstance(value, ValuationStatus):
                value = value.value
            assignments.append(f"{column} = ?")
            params.append(value)

        assignments.append("updated_at = ?")
        params.append(utc_now().isoformat())
        params.append(valuation_id)

        with self._lock:
            conn = self._get_conn()
            cursor = conn.execute(
                f"UPDATE valuations SET {', '.join(assignments)} WHERE id = ?",
                params,
            )
            conn.commit()
            if cursor.rowcount == 0:
                return None

        return self.get_valuation(valuation_id)

    def complete_valuation(
        self,
        valuation_id: str,
        *,
        inputs: dict[str, Any],
        result: dict[str, Any],
        enterprise_value: float,
        equity_value: float,
        sensitivity_data: dict[str, Any] | None = None,
    ) -> ValuationRecord | None:
        """Record a calculation result and mark the valuation completed."""
        return self.update_valuation(
            valuation_id,
            inputs=inputs,
            result=result,
            enterprise_value=enterprise_value,
            equity_value=equity_value,
            sensitivity_data=sensitivity_data,
            status=ValuationStatus.COMPLETED,
        )

    def delete_valuation(self, valuation_id: str) -> bool:
        """Delete a valuation.

        Returns:
            True if a record was deleted.
        """
        self.init()

        with self._lock:
            conn = self._get_conn()
            cursor = conn.execute("DELETE FROM valuations WHERE id = ?", (valuation_id,))
            conn.commit()
            return cursor.rowcount > 0

    def count_valuations(self, company_id: int | None = None) -> int:
        """Count valuations, optionally for one company."""
        self.init()

        with self._lock:
            conn = self._get_conn()
            if company_id is not None:
                row = conn.execute(
                    "SELECT COUNT(*) FROM valuations WHERE company_id = ?",
                    (company_id,),
                ).fetchone()
            else:
                row = conn.execute("SELECT COUNT(*) FROM valuations").fetchone()

        return row[0]

    def _row_to_record(self, row: sqlite3.Row) -> ValuationRecord:
        """Convert a database row to a ValuationRecord."""
        return ValuationRecord(
            id=row["id"],
            company_id=row["company_id"],
            user_id=row["user_id"],
            method=ValuationMethod(row["method"]),
            status=ValuationStatus(row["status"]),
            inputs=json.loads(row["inputs_json"]),
            notes=row["notes"],
            enterprise_value=row["enterprise_value"],
            equity_value=row["equity_value"],
            sensitivity_data=(
                json.loads(row["sensitivity_json"]) if row["sensitivity_json"] else None
            ),
            result=json.loads(row["result_json"]) if row["result_json"] else None,
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
