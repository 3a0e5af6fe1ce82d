import contextlib
import logging
import os
import sqlite3
from typing import Iterable, List, Optional, Sequence, Set

import query_builder as qb
from errors import DatamanError, EngineError, TableNavigationError, UnsupportedOperation
from query_builder import OrderSpec, Statement
from regex_functions import RegexFunctionRegistry

logger = logging.getLogger(__name__)

INSERT_BATCH_SIZE = 10_000


class Database:
    """Owns the SQLite connection, the table catalog and the current ordering."""

    def __init__(self, config: Optional[dict] = None, registry: Optional[RegexFunctionRegistry] = None):
        config = config or {}
        self.backup_step_delay = float(config.get("BACKUP_STEP_DELAY", 0.25))
        path = config.get("DEV_DB_PATH") or ":memory:"
        if path != ":memory:" and os.path.exists(path):
            os.remove(path)
        self.conn = sqlite3.connect(path, isolation_level=None)
        self.registry = registry or RegexFunctionRegistry()
        self.registry.install(self.conn)

        self.tables: List[str] = []
        self.table_idx = 0
        self.order = OrderSpec()
        # tables whose "id" column was added at ingestion rather than read from the source
        self.keyed_tables: Set[str] = set()

    def close(self):
        self.conn.close()

    # ---------- catalog ----------
    def refresh_tables(self) -> List[str]:
        """Reconcile the table list with the catalog.

        Known tables keep their position and the current table stays selected
        while it exists; tables the catalog gained are appended in creation
        order.
        """
        current = self.tables[self.table_idx] if self.tables else None
        sql, params = qb.list_tables()
        present = [row[0] for row in self.conn.execute(sql, params)]
        kept = [name for name in self.tables if name in present]
        self.tables = kept + [name for name in present if name not in kept]
        self.keyed_tables &= set(self.tables)
        if current in self.tables:
            self.table_idx = self.tables.index(current)
        elif self.tables:
            self.table_idx = max(0, min(self.table_idx, len(self.tables) - 1))
        else:
            self.table_idx = 0
        return self.tables

    @property
    def current_table(self) -> str:
        if not self.tables:
            raise DatamanError("No tables loaded")
        return self.tables[self.table_idx]

    def select_table(self, name: str):
        self.refresh_tables()
        if name not in self.tables:
            raise DatamanError(f"No such table: {name}")
        self.table_idx = self.tables.index(name)
        self.order = OrderSpec()

    def next_table(self):
        if self.table_idx + 1 >= len(self.tables):
            raise TableNavigationError("Already at the last table")
        self.table_idx += 1
        self.order = OrderSpec()

    def prev_table(self):
        if self.table_idx <= 0:
            raise TableNavigationError("Already at the first table")
        self.table_idx -= 1
        self.order = OrderSpec()

    def headers(self, table: Optional[str] = None) -> List[str]:
        sql, params = qb.table_info(table or self.current_table)
        return [row[1] for row in self.conn.execute(sql, params)]

    # ---------- execution ----------
    def execute_statements(self, statements: Iterable[Statement]):
        """Run statements as one transaction; any failure rolls everything back."""
        statements = list(statements)
        try:
            self.conn.execute("BEGIN")
            for stmt in statements:
                logger.debug("sql: %s %r", stmt.sql, stmt.params)
                self.conn.execute(stmt.sql, stmt.params)
            self.conn.execute("COMMIT")
        except sqlite3.Error as exc:
            self._rollback()
            logger.warning("batch rolled back: %s", exc)
            raise EngineError(exc) from exc

    def run_script(self, sql: str):
        """Run raw user SQL inside BEGIN/COMMIT."""
        logger.debug("script: %s", sql)
        before = self.current_table if self.tables else None
        try:
            self.conn.executescript(f"BEGIN;\n{sql}\n;\nCOMMIT;")
        except sqlite3.Error as exc:
            self._rollback()
            logger.warning("script rolled back: %s", exc)
            raise EngineError(exc) from exc
        finally:
            self.refresh_tables()
        self._check_order(before)

    def _check_order(self, before: Optional[str]):
        """Drop the ordering once the table it applied to or its column is gone."""
        if not self.tables or self.current_table != before:
            self.order = OrderSpec()
        elif self.order.column is not None and self.order.column not in self.headers():
            logger.info("ordering column %s no longer exists", self.order.column)
            self.order = OrderSpec()

    def _rollback(self):
        if self.conn.in_transaction:
            self.conn.execute("ROLLBACK")

    def query_one(self, stmt: Statement):
        try:
            return self.conn.execute(stmt.sql, stmt.params).fetchone()
        except sqlite3.Error as exc:
            raise EngineError(exc) from exc

    # ---------- ingestion ----------
    def create_table_from_rows(self, table: str, headers: Sequence[str], rows: Iterable[Sequence]):
        insert_sql = qb.insert_rows(table, headers)
        # a source "id" column is kept as data and rows are addressed by rowid
        with_key = not qb.has_key_column(headers)
        create = qb.create_table(table, headers, with_key=with_key)
        try:
            self.conn.execute("BEGIN")
            self.conn.execute(create.sql, create.params)
            batch = []
            for row in rows:
                batch.append(tuple(row))
                if len(batch) >= INSERT_BATCH_SIZE:
                    self.conn.executemany(insert_sql, batch)
                    batch = []
            if batch:
                self.conn.executemany(insert_sql, batch)
            self.conn.execute("COMMIT")
        except sqlite3.Error as exc:
            self._rollback()
            raise EngineError(exc) from exc
        self.refresh_tables()
        if with_key:
            self.keyed_tables.add(table)
        logger.info("created table %s with %d columns", table, len(headers))

    def has_synthetic_key(self, table: Optional[str] = None) -> bool:
        return (table or self.current_table) in self.keyed_tables

    def restore_from(self, path: str):
        """Copy a whole SQLite file into the working connection."""
        with contextlib.closing(sqlite3.connect(path)) as src:
            src.backup(self.conn)
        self.refresh_tables()

    def backup(self, dst_path: str):
        page_count = self.conn.execute("PRAGMA page_count").fetchone()[0]
        with contextlib.closing(sqlite3.connect(dst_path)) as dst:
            self.conn.backup(dst, pages=page_count or -1, sleep=self.backup_step_delay)
        logger.info("backed up %d pages to %s", page_count, dst_path)

    # ---------- reads ----------
    def count(self) -> int:
        row = self.query_one(qb.count_rows(self.current_table))
        return int(row[0]) if row else 0

    def fetch_page(self, limit: int, offset: int):
        table = self.current_table
        stmt = qb.select_page(table, self.order, limit, offset)
        try:
            cur = self.conn.execute(stmt.sql, stmt.params)
            rows = cur.fetchall()
            headers = [d[0] for d in cur.description] if cur.description else self.headers(table)
        except sqlite3.Error as exc:
            raise EngineError(exc) from exc
        return headers, rows, self.count()

    def rowid_at(self, position: int) -> int:
        row = self.query_one(qb.rowid_at(self.current_table, self.order, position))
        if row is None:
            raise DatamanError(f"No row at position {position}")
        return row[0]

    def exact_search(self, column: str, value: str, after_row: int) -> Optional[int]:
        """1-based rank of the next matching row after ``after_row``, or None."""
        row = self.query_one(qb.exact_search(self.current_table, column, value, self.order, after_row))
        return row[0] if row else None

    # ---------- ordering ----------
    def toggle_sort(self, column: str):
        self.order = self.order.toggled(column)

    # ---------- mutations ----------
    def update_cell(self, column: str, position: int, value):
        rowid = self.rowid_at(position)
        self.execute_statements([qb.update_cell(self.current_table, column, rowid, value)])

    def regex_filter(self, column: str, pattern: str) -> str:
        source = self.current_table
        self.execute_statements([qb.regex_filter(source, column, pattern)])
        new_table = qb.filtered_table_name(source)
        self.select_table(new_table)
        if source in self.keyed_tables:
            self.keyed_tables.add(new_table)
        return new_table

    def regex_transform(self, column: str, pattern: str):
        self.execute_statements(qb.regex_transform_no_capture(self.current_table, column, pattern))

    def copy_column(self, column: str):
        self.execute_statements(qb.copy_column(self.current_table, column))

    def text_to_int(self, column: str):
        self.execute_statements(qb.text_to_int(self.current_table, column))

    def int_to_text(self, column: str):
        self.execute_statements(qb.int_to_text(self.current_table, column))

    def math_operation(self, column: str, expression: str):
        self.execute_statements(qb.math_column(self.current_table, column, expression))

    def delete_column(self, column: str):
        self.execute_statements([qb.delete_column(self.current_table, column)])
        if self.order.column == column:
            self.order = OrderSpec()

    def rename_column(self, column: str, new_column: str):
        self.execute_statements([qb.rename_column(self.current_table, column, new_column)])
        if self.order.column == column:
            self.order = OrderSpec(new_column, self.order.ascending)

    def rename_table(self, new_table: str):
        old_table = self.current_table
        self.execute_statements([qb.rename_table(old_table, new_table)])
        self.tables[self.table_idx] = new_table
        if old_table in self.keyed_tables:
            self.keyed_tables.discard(old_table)
            self.keyed_tables.add(new_table)
        self.select_table(new_table)

    def delete_table(self):
        if len(self.tables) <= 1:
            raise UnsupportedOperation("Cannot delete the only table")
        table = self.current_table
        self.execute_statements([qb.delete_table(table)])
        del self.tables[self.table_idx]
        self.table_idx = min(self.table_idx, len(self.tables) - 1)
        self.keyed_tables.discard(table)
        self.refresh_tables()
        self.order = OrderSpec()
