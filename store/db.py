"""
SQLite Store

Creates and manages the tables behind SqliteStore:
- reference_row: catalog rows per tenant (parent scope, entity, label)
- document / document_line: document headers and their lines
- allocator_parameters: effective-dated prefix/counter/width rows per scope

Amounts are stored as decimal strings, dates as ISO strings.
"""

import json
import sqlite3
import uuid
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

from core.config import get_settings
from core.observability.logging import get_logger
from models.allocator import AllocatorParameters, AllocatorState
from models.documents import DocumentHeader, DocumentLine, DocumentRecord, LineDeletion
from models.reference import ReferenceRow
from store.base import (
    CatalogScope,
    DocumentNotFound,
    ReferenceStore,
    StoreError,
)


logger = get_logger(__name__)


_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS reference_row (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        catalog TEXT NOT NULL,
        tenant_id TEXT NOT NULL,
        row_id TEXT NOT NULL,
        parent_key TEXT,
        entity_id TEXT,
        label TEXT NOT NULL,
        display_fields TEXT,
        is_active INTEGER DEFAULT 1,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,

        UNIQUE(catalog, tenant_id, row_id)
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_reference_row_catalog
    ON reference_row(catalog, tenant_id)
    """,
    """
    CREATE TABLE IF NOT EXISTS document (
        id TEXT PRIMARY KEY,
        amount_excl_tax TEXT NOT NULL,
        tax_amount TEXT,
        amount_incl_tax TEXT NOT NULL,
        document_date TEXT,
        entity_id TEXT,
        counterpart_id TEXT,
        payment_mode_id TEXT,
        document_type_id TEXT,
        document_number TEXT,
        code TEXT,
        comment TEXT,
        attributes TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS document_line (
        id TEXT PRIMARY KEY,
        document_id TEXT NOT NULL REFERENCES document(id),
        position INTEGER NOT NULL,
        amount_excl_tax TEXT NOT NULL,
        tax_amount TEXT,
        classification TEXT,
        comment TEXT
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_document_line_document
    ON document_line(document_id, position)
    """,
    """
    CREATE TABLE IF NOT EXISTS allocator_parameters (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        scope_key TEXT NOT NULL,
        prefix TEXT,
        counter INTEGER,
        width INTEGER,
        is_active INTEGER DEFAULT 1,
        start_date TEXT NOT NULL,
        end_date TEXT,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
]

_HEADER_COLUMNS = (
    "amount_excl_tax", "tax_amount", "amount_incl_tax", "document_date",
    "entity_id", "counterpart_id", "payment_mode_id", "document_type_id",
    "document_number", "code", "comment", "attributes",
)


def _decimal_text(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)


def _date_text(value: Optional[date]) -> Optional[str]:
    return None if value is None else value.isoformat()


class SqliteStore(ReferenceStore):
    """
    ReferenceStore backed by a SQLite file.

    Usage:
        store = SqliteStore(tmp_path / "forms.db")
        document_id = store.persist_document(header, lines)
    """

    def __init__(
        self,
        db_path: Optional[Union[str, Path]] = None,
        today: Callable[[], date] = date.today,
    ):
        settings = get_settings()
        self.db_path = Path(db_path) if db_path is not None else settings.db_path
        self.default_width = settings.allocator_default_width
        self._today = today
        self.init_db()

    def _connect(self) -> sqlite3.Connection:
        """Get database connection with row factory"""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create the tables if they do not exist."""
        conn = self._connect()
        try:
            for statement in _SCHEMA:
                conn.execute(statement)
            conn.commit()
        finally:
            conn.close()
        logger.debug(f"Store tables initialized in {self.db_path}")

    # =========================================================================
    # Seeding
    # =========================================================================

    def add_reference_row(
        self,
        catalog: str,
        tenant_id: str,
        row: ReferenceRow,
        entity_id: Optional[str] = None,
        is_active: bool = True,
    ) -> None:
        conn = self._connect()
        try:
            conn.execute("""
                INSERT OR REPLACE INTO reference_row
                (catalog, tenant_id, row_id, parent_key, entity_id, label, display_fields, is_active)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                catalog,
                tenant_id,
                row.id,
                row.parent_key,
                entity_id,
                row.label,
                json.dumps(row.display_fields, default=str),
                1 if is_active else 0,
            ))
            conn.commit()
        finally:
            conn.close()

    def add_allocator_parameters(self, params: AllocatorParameters) -> None:
        conn = self._connect()
        try:
            conn.execute("""
                INSERT INTO allocator_parameters
                (scope_key, prefix, counter, width, is_active, start_date, end_date)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                params.scope_key,
                params.state.prefix,
                params.state.counter,
                params.state.width,
                1 if params.is_active else 0,
                _date_text(params.start_date),
                _date_text(params.end_date),
            ))
            conn.commit()
        finally:
            conn.close()

    # =========================================================================
    # Catalogs
    # =========================================================================

    def fetch_catalog(self, catalog: str, scope: CatalogScope) -> List[ReferenceRow]:
        query = "SELECT * FROM reference_row WHERE catalog = ? AND tenant_id = ?"
        params: list = [catalog, scope.tenant_id]

        if scope.active_only:
            query += " AND is_active = 1"
        if scope.entity_id is not None:
            query += " AND (entity_id IS NULL OR entity_id = ?)"
            params.append(scope.entity_id)
        if scope.parent_key is not None:
            query += " AND (parent_key IS NULL OR parent_key = '' OR parent_key = ?)"
            params.append(scope.parent_key)
        query += " ORDER BY label"

        conn = self._connect()
        try:
            rows = conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to fetch catalog {catalog}: {e}", operation="fetch_catalog") from e
        finally:
            conn.close()

        logger.debug(f"Fetched {len(rows)} rows", extra_fields={"catalog": catalog})
        return [
            ReferenceRow(
                id=str(row["row_id"]),
                parent_key=row["parent_key"],
                display_fields=json.loads(row["display_fields"]) if row["display_fields"] else {},
            )
            for row in rows
        ]

    # =========================================================================
    # Documents
    # =========================================================================

    def fetch_document(self, document_id: str) -> DocumentRecord:
        conn = self._connect()
        try:
            header_row = conn.execute(
                "SELECT * FROM document WHERE id = ?", (document_id,)
            ).fetchone()
            if header_row is None:
                raise DocumentNotFound(document_id)
            line_rows = conn.execute(
                "SELECT * FROM document_line WHERE document_id = ? ORDER BY position",
                (document_id,),
            ).fetchall()
        finally:
            conn.close()

        return DocumentRecord(
            header=_row_to_header(header_row),
            lines=tuple(_row_to_line(row) for row in line_rows),
        )

    def persist_document(
        self,
        header: DocumentHeader,
        lines: Sequence[DocumentLine],
        deletions: Sequence[LineDeletion] = (),
    ) -> str:
        document_id = header.id or uuid.uuid4().hex
        header_values = (
            _decimal_text(header.amount_excl_tax),
            _decimal_text(header.tax_amount),
            _decimal_text(header.amount_incl_tax),
            _date_text(header.document_date),
            header.entity_id,
            header.counterpart_id,
            header.payment_mode_id,
            header.document_type_id,
            header.document_number,
            header.code,
            header.comment,
            json.dumps(header.attributes, default=str),
        )

        conn = self._connect()
        try:
            # One transaction: committed on success, rolled back on any error
            with conn:
                if header.id is None:
                    conn.execute(
                        f"INSERT INTO document (id, {', '.join(_HEADER_COLUMNS)}) "
                        f"VALUES (?, {', '.join('?' for _ in _HEADER_COLUMNS)})",
                        (document_id,) + header_values,
                    )
                else:
                    cursor = conn.execute(
                        f"UPDATE document SET {', '.join(f'{c} = ?' for c in _HEADER_COLUMNS)}, "
                        f"updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                        header_values + (document_id,),
                    )
                    if cursor.rowcount == 0:
                        raise DocumentNotFound(document_id)

                for deletion in deletions:
                    conn.execute(
                        "DELETE FROM document_line WHERE id = ? AND document_id = ?",
                        (deletion.line_id, document_id),
                    )

                for position, line in enumerate(lines):
                    conn.execute("""
                        INSERT OR REPLACE INTO document_line
                        (id, document_id, position, amount_excl_tax, tax_amount, classification, comment)
                        VALUES (?, ?, ?, ?, ?, ?, ?)
                    """, (
                        line.id or uuid.uuid4().hex,
                        document_id,
                        position,
                        _decimal_text(line.amount_excl_tax),
                        _decimal_text(line.tax_amount),
                        json.dumps(line.classification),
                        line.comment,
                    ))
        except sqlite3.Error as e:
            raise StoreError(f"Failed to save document {document_id}: {e}", operation="persist_document") from e
        finally:
            conn.close()

        logger.info(
            f"Stored document {document_id}",
            extra_fields={"lines": len(lines), "deleted_lines": len(deletions)},
        )
        return document_id

    # =========================================================================
    # Allocator
    # =========================================================================

    def _parameter_rows(self, conn: sqlite3.Connection, scope_key: str) -> List[Tuple[int, AllocatorParameters]]:
        rows = conn.execute(
            "SELECT * FROM allocator_parameters WHERE scope_key = ?", (scope_key,)
        ).fetchall()
        return [(row["id"], self._row_to_parameters(row)) for row in rows]

    def _row_to_parameters(self, row: sqlite3.Row) -> AllocatorParameters:
        width = row["width"] if row["width"] else self.default_width
        return AllocatorParameters(
            scope_key=row["scope_key"],
            state=AllocatorState(prefix=row["prefix"], counter=row["counter"], width=width),
            is_active=bool(row["is_active"]),
            start_date=row["start_date"],
            end_date=row["end_date"],
        )

    def _active_parameters(self, conn: sqlite3.Connection, scope_key: str) -> Tuple[int, AllocatorParameters]:
        from allocator.engine import select_active_parameters
        candidates = self._parameter_rows(conn, scope_key)
        selected = select_active_parameters((p for _, p in candidates), scope_key, self._today())
        for row_id, params in candidates:
            if params is selected:
                return row_id, params
        raise StoreError(f"Selected parameters for {scope_key} have no row", operation="allocator")

    def fetch_allocator_state(self, scope_key: str) -> AllocatorState:
        conn = self._connect()
        try:
            _, params = self._active_parameters(conn, scope_key)
        finally:
            conn.close()
        return params.state

    def persist_allocator_state(self, scope_key: str, state: AllocatorState) -> None:
        conn = self._connect()
        try:
            with conn:
                row_id, _ = self._active_parameters(conn, scope_key)
                conn.execute("""
                    UPDATE allocator_parameters
                    SET prefix = ?, counter = ?, width = ?, updated_at = CURRENT_TIMESTAMP
                    WHERE id = ?
                """, (state.prefix, state.counter, state.width, row_id))
        except sqlite3.Error as e:
            raise StoreError(f"Failed to update allocator {scope_key}: {e}", operation="allocator") from e
        finally:
            conn.close()


# =============================================================================
# Row conversion
# =============================================================================

def _row_to_header(row: sqlite3.Row) -> DocumentHeader:
    return DocumentHeader(
        id=row["id"],
        amount_excl_tax=row["amount_excl_tax"],
        tax_amount=row["tax_amount"],
        amount_incl_tax=row["amount_incl_tax"],
        document_date=row["document_date"],
        entity_id=row["entity_id"],
        counterpart_id=row["counterpart_id"],
        payment_mode_id=row["payment_mode_id"],
        document_type_id=row["document_type_id"],
        document_number=row["document_number"],
        code=row["code"],
        comment=row["comment"],
        attributes=json.loads(row["attributes"]) if row["attributes"] else {},
    )


def _row_to_line(row: sqlite3.Row) -> DocumentLine:
    return DocumentLine(
        id=row["id"],
        amount_excl_tax=row["amount_excl_tax"],
        tax_amount=row["tax_amount"],
        classification=json.loads(row["classification"]) if row["classification"] else {},
        comment=row["comment"],
    )
