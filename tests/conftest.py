from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from typing import Any, Dict, List, Optional
import itertools

import pytest

from models.subscription import Subscription


class FakeQuery:
    """Just enough of the supabase-py query builder for the services under test."""

    def __init__(self, client: "FakeSupabase", table: str):
        self.client = client
        self.table = table
        self.action = "select"
        self.payload: Any = None
        self.filters = []
        self.order_by: Optional[tuple] = None
        self.row_limit: Optional[int] = None

    def select(self, *columns):
        self.action = "select"
        return self

    def insert(self, rows):
        self.action = "insert"
        self.payload = rows if isinstance(rows, list) else [rows]
        return self

    def update(self, data):
        self.action = "update"
        self.payload = data
        return self

    def delete(self):
        self.action = "delete"
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def lte(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and row.get(column) <= value)
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, count):
        self.row_limit = count
        return self

    def _matches(self, row):
        return all(check(row) for check in self.filters)

    def execute(self):
        self.client.executed.append((self.table, self.action))
        if self.table in self.client.failing_tables or (self.table, self.action) in self.client.failing_actions:
            raise RuntimeError(f"{self.table} unavailable")

        rows = self.client.tables.setdefault(self.table, [])

        if self.action == "insert":
            inserted = []
            for row in self.payload:
                stored = {"id": str(next(self.client.ids)), **row}
                rows.append(stored)
                inserted.append(dict(stored))
            return SimpleNamespace(data=inserted)

        if self.action == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(self.payload)
                    updated.append(dict(row))
            return SimpleNamespace(data=updated)

        if self.action == "delete":
            removed = [row for row in rows if self._matches(row)]
            self.client.tables[self.table] = [row for row in rows if not self._matches(row)]
            return SimpleNamespace(data=removed)

        selected = [dict(row) for row in rows if self._matches(row)]
        if self.order_by:
            column, desc = self.order_by
            selected.sort(key=lambda row: row.get(column) or "", reverse=desc)
        if self.row_limit is not None:
            selected = selected[:self.row_limit]
        return SimpleNamespace(data=selected)


class FakeSupabase:
    def __init__(self, tables: Optional[Dict[str, List[dict]]] = None):
        self.tables = {name: [dict(row) for row in rows] for name, rows in (tables or {}).items()}
        self.failing_tables = set()
        self.failing_actions = set()
        self.executed = []
        self.ids = itertools.count(1000)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)


@pytest.fixture
def fake_supabase():
    return FakeSupabase()


@pytest.fixture
def now():
    return datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def utc(year, month, day, hour=0, minute=0):
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


def make_subscription(
    id: str,
    status: str,
    price,
    created_at: datetime,
    trial_end_date: Optional[datetime] = None,
    name: Optional[str] = None,
) -> Subscription:
    return Subscription(
        id=id,
        tool_id=f"tool-{id}",
        name=name or f"Tool {id}",
        price=Decimal(str(price)),
        status=status,
        created_at=created_at,
        trial_end_date=trial_end_date,
    )
