"""
Shared fixtures: an in-memory stand-in for the Supabase client.

Supports the subset of the PostgREST builder the app uses
(select/insert/update/delete, eq, order, limit, range, execute), the
``documents(...)`` and ``documents!inner(...)`` joins on chunk rows (with
``documents.<field>`` filters), a server-side ``max_rows`` cap, and a
storage bucket API.
Failures can be injected per table/operation/call number.
"""

import copy
import itertools
import os
import re
import uuid
from datetime import datetime, timedelta, timezone

import pytest

os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")

from app.features.documents.schemas import DocumentStatus, IngestionConfig  # noqa: E402
from app.features.documents.service import DocumentRepository  # noqa: E402

USER_ID = "11111111-1111-1111-1111-111111111111"
OTHER_USER_ID = "22222222-2222-2222-2222-222222222222"

_RELATION = re.compile(r"(\w+)(!inner)?\(([^)]*)\)")
_RELATION_KEYS = {"documents": "document_id"}


class FakeResponse:
    def __init__(self, data, count=None):
        self.data = data
        self.count = count


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.op = None
        self.payload = None
        self.columns = "*"
        self.count_mode = None
        self.filters: list[tuple[str, object]] = []
        self.orders: list[tuple[str, bool]] = []
        self.limit_n = None
        self.offset = 0

    # ── operations ──
    def select(self, columns="*", count=None):
        self.op, self.columns, self.count_mode = "select", columns, count
        return self

    def insert(self, rows):
        self.op, self.payload = "insert", rows
        return self

    def update(self, data):
        self.op, self.payload = "update", data
        return self

    def delete(self):
        self.op = "delete"
        return self

    # ── modifiers ──
    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def order(self, column, desc=False):
        self.orders.append((column, desc))
        return self

    def limit(self, n):
        self.limit_n = n
        return self

    def range(self, start, end):
        self.offset, self.limit_n = start, end - start + 1
        return self

    def _matches(self, row):
        return all(row.get(col) == value for col, value in self.filters if "." not in col)

    def _matches_relation(self, row):
        """Filters such as ``documents.upload_status`` apply to the joined row."""
        for col, value in self.filters:
            if "." not in col:
                continue
            relation, field = col.split(".", 1)
            parent = row.get(relation)
            if not parent or parent.get(field) != value:
                return False
        return True

    def execute(self):
        self.db.check_failure(self.table, self.op)
        rows = self.db.tables.setdefault(self.table, [])

        if self.op == "insert":
            payload = self.payload if isinstance(self.payload, list) else [self.payload]
            inserted = []
            for item in payload:
                row = copy.deepcopy(item)
                row.setdefault("id", str(uuid.uuid4()))
                row.setdefault("created_at", self.db.next_timestamp())
                rows.append(row)
                inserted.append(copy.deepcopy(row))
            self.db.log.append((self.table, "insert", copy.deepcopy(payload)))
            return FakeResponse(inserted)

        if self.op == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(copy.deepcopy(self.payload))
                    updated.append(copy.deepcopy(row))
            self.db.log.append((self.table, "update", copy.deepcopy(self.payload), list(self.filters)))
            return FakeResponse(updated)

        if self.op == "delete":
            removed = [row for row in rows if self._matches(row)]
            self.db.tables[self.table] = [row for row in rows if not self._matches(row)]
            self.db.log.append((self.table, "delete", list(self.filters)))
            return FakeResponse(copy.deepcopy(removed))

        selected = [copy.deepcopy(row) for row in rows if self._matches(row)]
        for column, desc in reversed(self.orders):
            selected.sort(key=lambda r: (r.get(column) is None, r.get(column)), reverse=desc)
        for relation, inner, fields in _RELATION.findall(self.columns):
            wanted = [f.strip() for f in fields.split(",") if f.strip()]
            key = _RELATION_KEYS[relation]
            for row in selected:
                parent = next((p for p in self.db.tables.get(relation, []) if p["id"] == row.get(key)), None)
                row[relation] = {f: parent.get(f) for f in wanted} if parent else None
            if inner:
                selected = [row for row in selected if row[relation] is not None]
        selected = [row for row in selected if self._matches_relation(row)]
        total = len(selected)
        selected = selected[self.offset:]
        if self.limit_n is not None:
            selected = selected[: self.limit_n]
        if self.db.max_rows is not None:
            selected = selected[: self.db.max_rows]
        return FakeResponse(selected, count=total if self.count_mode else None)


class FakeBucket:
    def __init__(self, storage: "FakeStorage", name: str):
        self.storage = storage
        self.name = name

    def upload(self, path, file, file_options=None):
        self.storage.check_failure("upload")
        self.storage.objects[(self.name, path)] = bytes(file)
        return {"path": path}

    def download(self, path):
        self.storage.check_failure("download")
        try:
            return self.storage.objects[(self.name, path)]
        except KeyError:
            raise RuntimeError(f"Object not found: {path}")

    def remove(self, paths):
        self.storage.check_failure("remove")
        for path in paths:
            self.storage.objects.pop((self.name, path), None)
        return [{"name": p} for p in paths]


class FakeStorage:
    def __init__(self):
        self.objects: dict[tuple[str, str], bytes] = {}
        self.failing: set[str] = set()

    def from_(self, bucket):
        return FakeBucket(self, bucket)

    def check_failure(self, op):
        if op in self.failing:
            raise RuntimeError(f"storage {op} failed")


class FakeSupabase:
    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.storage = FakeStorage()
        self.log: list[tuple] = []
        self._failures: dict[tuple[str, str], set[int]] = {}
        self._calls: dict[tuple[str, str], int] = {}
        self._clock = itertools.count()
        self.max_rows: int | None = None  # PostgREST server-side row cap

    def table(self, name):
        return FakeQuery(self, name)

    def next_timestamp(self) -> str:
        base = datetime(2025, 1, 1, tzinfo=timezone.utc)
        return (base + timedelta(seconds=next(self._clock))).isoformat()

    def fail(self, table: str, op: str, *calls: int):
        """Make the given 1-based call numbers of ``op`` on ``table`` raise."""
        self._failures[(table, op)] = set(calls)

    def check_failure(self, table, op):
        key = (table, op)
        self._calls[key] = self._calls.get(key, 0) + 1
        if self._calls[key] in self._failures.get(key, set()):
            raise RuntimeError(f"{op} on {table} failed (call {self._calls[key]})")

    def status_history(self, document_id: str) -> list[str]:
        """Every upload_status value written for the document, in order."""
        history = []
        for entry in self.log:
            table, op, payload = entry[0], entry[1], entry[2]
            if table == "documents" and op == "update" and ("id", document_id) in entry[3]:
                if "upload_status" in payload:
                    history.append(payload["upload_status"])
        return history


@pytest.fixture
def fake_db() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def repository(fake_db) -> DocumentRepository:
    return DocumentRepository(fake_db)


@pytest.fixture
def config() -> IngestionConfig:
    return IngestionConfig(chunk_max_chars=200, chunk_min_chars=20, insert_batch_size=2)


@pytest.fixture
def make_document(repository):
    """Create a document row in the initial state and return its id."""
    def _make(user_id: str = USER_ID, title: str = "Biology Notes", file_name: str = "notes.txt",
              status: DocumentStatus | None = None) -> str:
        doc = repository.create_document(
            user_id=user_id,
            title=title,
            file_name=file_name,
            file_path=f"{user_id}/1700000000000_{file_name}",
            file_size=10,
            mime_type="text/plain",
        )
        if status is not None:
            repository.set_status(doc["id"], status)
        return doc["id"]
    return _make
