"""Document-store client contract and the bundled SQLite implementation."""

from __future__ import annotations

import json
import re
import sqlite3
import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from http import HTTPStatus
from typing import Any, Protocol, runtime_checkable
from urllib.parse import urlparse

from observability_objects.config import ObservabilityConfig
from observability_objects.errors import (
    IndexNotFoundError,
    OperationTimeoutError,
    ResourceAlreadyExistsError,
    StoreUnavailableError,
)
from observability_objects.filters import resolve_nested_path


class ResultKind(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    NOT_FOUND = "not_found"
    NOOP = "noop"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class WriteResult:
    id: str
    result: ResultKind
    version: int = -1
    seq_no: int = -2
    primary_term: int = 0


@dataclass(frozen=True)
class GetResult:
    id: str
    found: bool
    source: dict[str, Any] | None = None
    version: int = -1
    seq_no: int = -2
    primary_term: int = 0


@dataclass(frozen=True)
class BulkItemResult:
    id: str
    status: HTTPStatus
    result: ResultKind


@dataclass(frozen=True)
class SearchHit:
    id: str
    source: dict[str, Any]
    version: int = -1
    seq_no: int = -2
    primary_term: int = 0


@dataclass(frozen=True)
class SearchResponse:
    total_hits: int
    hits: list[SearchHit] = field(default_factory=list)
    total_hits_relation: str = "eq"


@runtime_checkable
class DocumentStoreClient(Protocol):
    """Primitives the persistence gateway needs from a document store."""

    def close(self) -> None: ...

    def create_index(self, name: str, mapping: dict[str, Any], settings: dict[str, Any]) -> None:
        """Create an index; raises ResourceAlreadyExistsError if it exists."""
        ...

    def index_exists(self, name: str) -> bool: ...

    def index_document(
        self,
        index: str,
        body: dict[str, Any],
        *,
        doc_id: str | None = None,
        create_only: bool = False,
    ) -> WriteResult: ...

    def get_document(self, index: str, doc_id: str) -> GetResult: ...

    def multi_get(self, index: str, doc_ids: list[str]) -> list[GetResult]: ...

    def update_document(self, index: str, doc_id: str, body: dict[str, Any]) -> WriteResult: ...

    def delete_document(self, index: str, doc_id: str) -> WriteResult: ...

    def bulk_delete(self, index: str, doc_ids: list[str]) -> list[BulkItemResult]: ...

    def search(self, index: str, query: dict[str, Any]) -> SearchResponse: ...

    def reindex(self, source_index: str, dest_index: str) -> int:
        """Copy every document unmodified; raises IndexNotFoundError for a missing source."""
        ...

    def delete_index(self, name: str) -> None:
        """Drop an index; raises IndexNotFoundError if it does not exist."""
        ...

    def storage_info(self) -> dict[str, Any]: ...


# --- Storage target resolution ---


@dataclass(frozen=True)
class StorageTarget:
    """Resolved storage target from db_path and URI forms."""

    backend: str
    uri: str
    db_path: str | None = None


def parse_storage_target(
    db_path: str | None = None,
    storage_uri: str | None = None,
) -> StorageTarget:
    """Resolve backend target from db_path and URI forms."""
    if storage_uri is None:
        db_path = db_path or "observability.db"
        return StorageTarget(backend="sqlite", uri=f"sqlite:///{db_path}", db_path=db_path)

    parsed = urlparse(storage_uri)

    if parsed.scheme == "sqlite":
        sqlite_path = parsed.path
        if parsed.netloc:
            sqlite_path = f"{parsed.netloc}{sqlite_path}"
        elif sqlite_path.startswith("//"):
            # sqlite:////abs/path -> /abs/path
            sqlite_path = sqlite_path[1:]
        elif sqlite_path.startswith("/"):
            # sqlite:///rel/path -> rel/path
            sqlite_path = sqlite_path[1:]
        if not sqlite_path:
            raise StoreUnavailableError("parse_storage_uri", f"Invalid sqlite URI: {storage_uri}")
        if db_path is not None and db_path != sqlite_path:
            raise StoreUnavailableError(
                "parse_storage_uri",
                f"Conflicting db_path '{db_path}' and storage_uri '{storage_uri}'",
            )
        return StorageTarget(backend="sqlite", uri=storage_uri, db_path=sqlite_path)

    raise StoreUnavailableError(
        "parse_storage_uri",
        f"Unsupported storage URI scheme '{parsed.scheme}' for '{storage_uri}'",
    )


# --- Query evaluation ---


_TOKEN_RE = re.compile(r"[\w*]+", re.UNICODE)
_QUERY_STRING_OPERATORS = frozenset({"AND", "OR", "NOT"})


def _values(source: dict[str, Any], path: str) -> list[Any]:
    value = resolve_nested_path(source, path)
    if value is None:
        return []
    if isinstance(value, list):
        return [v for v in value if v is not None]
    return [value]


def _tokens(text: Any) -> list[str]:
    return [t.lower() for t in _TOKEN_RE.findall(str(text))]


def _single(body: dict[str, Any], clause: str) -> tuple[str, Any]:
    if len(body) != 1:
        raise StoreUnavailableError("search", f"'{clause}' expects exactly one field")
    return next(iter(body.items()))


def _matches(clause: dict[str, Any], source: dict[str, Any]) -> bool:
    """Evaluate one query DSL clause against a document source."""
    kind, body = _single(clause, "query")

    if kind == "match_all":
        return True

    if kind == "bool":
        required = list(body.get("filter", [])) + list(body.get("must", []))
        if not all(_matches(c, source) for c in required):
            return False
        if any(_matches(c, source) for c in body.get("must_not", [])):
            return False
        should = body.get("should", [])
        if should:
            minimum = body.get("minimum_should_match", 0 if required else 1)
            if sum(1 for c in should if _matches(c, source)) < minimum:
                return False
        return True

    if kind == "term":
        path, expected = _single(body, kind)
        if isinstance(expected, dict):
            expected = expected.get("value")
        return expected in _values(source, path)

    if kind == "terms":
        path, expected = _single(body, kind)
        actual = _values(source, path)
        return any(v in actual for v in expected)

    if kind == "exists":
        return bool(_values(source, body["field"]))

    if kind == "range":
        path, bounds = _single(body, kind)
        return any(_in_range(v, bounds) for v in _values(source, path))

    if kind == "match":
        path, spec = _single(body, kind)
        if not isinstance(spec, dict):
            spec = {"query": spec}
        wanted = _tokens(spec.get("query", ""))
        have = {t for v in _values(source, path) for t in _tokens(v)}
        if not wanted:
            return False
        if str(spec.get("operator", "or")).lower() == "and":
            return all(t in have for t in wanted)
        return any(t in have for t in wanted)

    if kind == "query_string":
        terms = [
            t for t in _TOKEN_RE.findall(body.get("query", "")) if t not in _QUERY_STRING_OPERATORS
        ]
        have = {
            t for path in body.get("fields", []) for v in _values(source, path) for t in _tokens(v)
        }
        return any(_term_matches(t.lower(), have) for t in terms)

    raise StoreUnavailableError("search", f"Unsupported query clause '{kind}'")


def _in_range(value: Any, bounds: dict[str, Any]) -> bool:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    checks = {
        "gte": lambda b: value >= b,
        "gt": lambda b: value > b,
        "lte": lambda b: value <= b,
        "lt": lambda b: value < b,
    }
    return all(checks[op](b) for op, b in bounds.items() if op in checks and b is not None)


def _term_matches(term: str, have: set[str]) -> bool:
    if term.endswith("*"):
        prefix = term.rstrip("*")
        return any(t.startswith(prefix) for t in have)
    return term in have


def _sort_key(value: Any) -> tuple[int, Any]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, value)
    return (1, str(value))


def _sort_hits(rows: list[SearchHit], sort: list[Any]) -> list[SearchHit]:
    """Stable multi-key sort; documents missing a sort value go last."""
    ordered = list(rows)
    for spec in reversed(sort):
        if isinstance(spec, str):
            path, order = spec, "asc"
        else:
            path, options = _single(spec, "sort")
            order = options.get("order", "asc") if isinstance(options, dict) else options
        if path.endswith(".keyword"):
            path = path[: -len(".keyword")]
        present = [h for h in ordered if _values(h.source, path)]
        missing = [h for h in ordered if not _values(h.source, path)]
        present.sort(key=lambda h: _sort_key(_values(h.source, path)[0]), reverse=order == "desc")
        ordered = present + missing
    return ordered


# --- SQLite implementation ---


class SqliteDocumentStore:
    """SQLite-backed document store holding indices of JSON documents."""

    def __init__(self, db_path: str, *, timeout_ms: int = 60000) -> None:
        self.engine_version = "v1"
        self.db_path = db_path
        self.timeout_ms = timeout_ms
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(
            db_path, timeout=timeout_ms / 1000.0, check_same_thread=False
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._create_tables()

    def _create_tables(self) -> None:
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS indices (
                name TEXT PRIMARY KEY,
                mapping_json TEXT NOT NULL,
                settings_json TEXT NOT NULL,
                created_at TEXT NOT NULL,
                next_seq_no INTEGER NOT NULL DEFAULT 0
            );

            CREATE TABLE IF NOT EXISTS documents (
                index_name TEXT NOT NULL,
                doc_id TEXT NOT NULL,
                source_json TEXT NOT NULL,
                version INTEGER NOT NULL,
                seq_no INTEGER NOT NULL,
                primary_term INTEGER NOT NULL DEFAULT 1,
                PRIMARY KEY (index_name, doc_id),
                FOREIGN KEY (index_name) REFERENCES indices(name) ON DELETE CASCADE
            );
        """)
        self._conn.commit()

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        with self._lock:
            try:
                yield
            except sqlite3.OperationalError as e:
                self._conn.rollback()
                msg = str(e).lower()
                if "locked" in msg or "busy" in msg:
                    raise OperationTimeoutError(operation, self.timeout_ms) from e
                raise StoreUnavailableError(operation, str(e)) from e
            except sqlite3.Error as e:
                self._conn.rollback()
                raise StoreUnavailableError(operation, str(e)) from e

    def close(self) -> None:
        self._conn.close()

    # --- Index administration ---

    def create_index(self, name: str, mapping: dict[str, Any], settings: dict[str, Any]) -> None:
        with self._guard("create_index"):
            if self._index_exists(name):
                raise ResourceAlreadyExistsError(name)
            self._conn.execute(
                "INSERT INTO indices (name, mapping_json, settings_json, created_at) "
                "VALUES (?, ?, ?, ?)",
                (
                    name,
                    json.dumps(mapping, sort_keys=True),
                    json.dumps(settings, sort_keys=True),
                    datetime.now(timezone.utc).isoformat(),
                ),
            )
            self._conn.commit()

    def index_exists(self, name: str) -> bool:
        with self._guard("index_exists"):
            return self._index_exists(name)

    def _index_exists(self, name: str) -> bool:
        row = self._conn.execute("SELECT 1 FROM indices WHERE name = ?", (name,)).fetchone()
        return row is not None

    def _require_index(self, name: str) -> None:
        if not self._index_exists(name):
            raise IndexNotFoundError(name)

    def get_index(self, name: str) -> dict[str, Any]:
        """Return the stored mapping and settings of an index."""
        with self._guard("get_index"):
            row = self._conn.execute(
                "SELECT mapping_json, settings_json FROM indices WHERE name = ?", (name,)
            ).fetchone()
            if row is None:
                raise IndexNotFoundError(name)
            return {"mappings": json.loads(row[0]), "settings": json.loads(row[1])}

    def delete_index(self, name: str) -> None:
        with self._guard("delete_index"):
            self._require_index(name)
            self._conn.execute("DELETE FROM documents WHERE index_name = ?", (name,))
            self._conn.execute("DELETE FROM indices WHERE name = ?", (name,))
            self._conn.commit()

    def reindex(self, source_index: str, dest_index: str) -> int:
        with self._guard("reindex"):
            self._require_index(source_index)
            self._require_index(dest_index)
            rows = self._conn.execute(
                "SELECT doc_id, source_json FROM documents WHERE index_name = ? ORDER BY rowid",
                (source_index,),
            ).fetchall()
            for doc_id, source_json in rows:
                self._put(dest_index, doc_id, source_json)
            self._conn.commit()
            return len(rows)

    def count(self, index: str) -> int:
        with self._guard("count"):
            self._require_index(index)
            row = self._conn.execute(
                "SELECT COUNT(*) FROM documents WHERE index_name = ?", (index,)
            ).fetchone()
            return int(row[0])

    # --- Documents ---

    def _next_seq_no(self, index: str) -> int:
        row = self._conn.execute(
            "SELECT next_seq_no FROM indices WHERE name = ?", (index,)
        ).fetchone()
        seq_no = int(row[0])
        self._conn.execute(
            "UPDATE indices SET next_seq_no = ? WHERE name = ?", (seq_no + 1, index)
        )
        return seq_no

    def _current_version(self, index: str, doc_id: str) -> int | None:
        row = self._conn.execute(
            "SELECT version FROM documents WHERE index_name = ? AND doc_id = ?",
            (index, doc_id),
        ).fetchone()
        return None if row is None else int(row[0])

    def _put(self, index: str, doc_id: str, source_json: str) -> WriteResult:
        version = self._current_version(index, doc_id)
        seq_no = self._next_seq_no(index)
        if version is None:
            self._conn.execute(
                "INSERT INTO documents (index_name, doc_id, source_json, version, seq_no) "
                "VALUES (?, ?, ?, 1, ?)",
                (index, doc_id, source_json, seq_no),
            )
            return WriteResult(doc_id, ResultKind.CREATED, 1, seq_no, 1)
        self._conn.execute(
            "UPDATE documents SET source_json = ?, version = ?, seq_no = ? "
            "WHERE index_name = ? AND doc_id = ?",
            (source_json, version + 1, seq_no, index, doc_id),
        )
        return WriteResult(doc_id, ResultKind.UPDATED, version + 1, seq_no, 1)

    def index_document(
        self,
        index: str,
        body: dict[str, Any],
        *,
        doc_id: str | None = None,
        create_only: bool = False,
    ) -> WriteResult:
        with self._guard("index_document"):
            self._require_index(index)
            doc_id = doc_id or uuid.uuid4().hex
            if create_only and self._current_version(index, doc_id) is not None:
                return WriteResult(doc_id, ResultKind.CONFLICT)
            result = self._put(index, doc_id, json.dumps(body))
            self._conn.commit()
            return result

    def get_document(self, index: str, doc_id: str) -> GetResult:
        with self._guard("get_document"):
            self._require_index(index)
            return self._get(index, doc_id)

    def _get(self, index: str, doc_id: str) -> GetResult:
        row = self._conn.execute(
            "SELECT source_json, version, seq_no, primary_term FROM documents "
            "WHERE index_name = ? AND doc_id = ?",
            (index, doc_id),
        ).fetchone()
        if row is None:
            return GetResult(doc_id, found=False)
        return GetResult(doc_id, True, json.loads(row[0]), int(row[1]), int(row[2]), int(row[3]))

    def multi_get(self, index: str, doc_ids: list[str]) -> list[GetResult]:
        with self._guard("multi_get"):
            self._require_index(index)
            return [self._get(index, doc_id) for doc_id in doc_ids]

    def update_document(self, index: str, doc_id: str, body: dict[str, Any]) -> WriteResult:
        with self._guard("update_document"):
            self._require_index(index)
            if self._current_version(index, doc_id) is None:
                return WriteResult(doc_id, ResultKind.NOT_FOUND)
            result = self._put(index, doc_id, json.dumps(body))
            self._conn.commit()
            return result

    def delete_document(self, index: str, doc_id: str) -> WriteResult:
        with self._guard("delete_document"):
            self._require_index(index)
            result = self._delete(index, doc_id)
            self._conn.commit()
            return result

    def _delete(self, index: str, doc_id: str) -> WriteResult:
        version = self._current_version(index, doc_id)
        if version is None:
            return WriteResult(doc_id, ResultKind.NOT_FOUND)
        seq_no = self._next_seq_no(index)
        self._conn.execute(
            "DELETE FROM documents WHERE index_name = ? AND doc_id = ?", (index, doc_id)
        )
        return WriteResult(doc_id, ResultKind.DELETED, version + 1, seq_no, 1)

    def bulk_delete(self, index: str, doc_ids: list[str]) -> list[BulkItemResult]:
        with self._guard("bulk_delete"):
            self._require_index(index)
            items: list[BulkItemResult] = []
            for doc_id in doc_ids:
                result = self._delete(index, doc_id)
                deleted = result.result is ResultKind.DELETED
                status = HTTPStatus.OK if deleted else HTTPStatus.NOT_FOUND
                items.append(BulkItemResult(doc_id, status, result.result))
            self._conn.commit()
            return items

    def search(self, index: str, query: dict[str, Any]) -> SearchResponse:
        with self._guard("search"):
            self._require_index(index)
            rows = self._conn.execute(
                "SELECT doc_id, source_json, version, seq_no, primary_term FROM documents "
                "WHERE index_name = ? ORDER BY rowid",
                (index,),
            ).fetchall()
        clause = query.get("query") or {"match_all": {}}
        hits = [
            SearchHit(doc_id, source, int(version), int(seq_no), int(term))
            for doc_id, source_json, version, seq_no, term in rows
            for source in (json.loads(source_json),)
            if _matches(clause, source)
        ]
        hits = _sort_hits(hits, query.get("sort") or [])
        start = int(query.get("from") or 0)
        size = query.get("size")
        page = hits[start:] if size is None else hits[start : start + int(size)]
        return SearchResponse(total_hits=len(hits), hits=page)

    def storage_info(self) -> dict[str, Any]:
        """Return backend info for operator commands."""
        with self._guard("storage_info"):
            rows = self._conn.execute(
                "SELECT i.name, COUNT(d.doc_id) FROM indices i "
                "LEFT JOIN documents d ON d.index_name = i.name GROUP BY i.name ORDER BY i.name"
            ).fetchall()
        return {
            "backend": "sqlite",
            "db_path": self.db_path,
            "engine_version": self.engine_version,
            "indices": {name: int(count) for name, count in rows},
        }


def open_store(
    db_path: str | None = None,
    *,
    storage_uri: str | None = None,
    config: ObservabilityConfig | None = None,
) -> DocumentStoreClient:
    """Open a document store from a db_path or URI-style storage binding."""
    cfg = config or ObservabilityConfig()
    if db_path is None and storage_uri is None:
        storage_uri = cfg.storage_uri
    target = parse_storage_target(db_path=db_path, storage_uri=storage_uri)
    if target.backend == "sqlite" and target.db_path is not None:
        return SqliteDocumentStore(target.db_path, timeout_ms=cfg.operation_timeout_ms)
    raise StoreUnavailableError("open_store", f"Unsupported backend '{target.backend}'")
