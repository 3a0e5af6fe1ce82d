import logging
import os
import sqlite3

import numpy as np
import pandas as pd

from errors import EngineError, IngestError
from query_builder import KEY_COLUMN, quote_ident

logger = logging.getLogger(__name__)

CSV_EXTENSIONS = {".csv"}
SQLITE_EXTENSIONS = {".sqlite", ".sqlite3", ".db"}


def frame_rows(df: pd.DataFrame):
    """Yield row tuples with missing values as None, ready to bind."""
    values = df.to_numpy(dtype=object)
    values = np.where(pd.isna(values), None, values)
    for row in values:
        yield tuple(row)


class FileTypeHandler:
    def __init__(self, path: str):
        self.path = path
        stem, ext = os.path.splitext(os.path.basename(path))
        self.stem = stem
        self.ext = ext.lower()

    @property
    def is_csv(self) -> bool:
        return self.ext in CSV_EXTENSIONS

    @property
    def is_sqlite(self) -> bool:
        return self.ext in SQLITE_EXTENSIONS

    def load_into(self, database):
        if not os.path.exists(self.path):
            raise IngestError(f"No such file: {self.path}")
        if self.is_csv:
            self._load_csv(database)
        elif self.is_sqlite:
            self._load_sqlite(database)
        else:
            raise IngestError("Unsupported file type (use .csv, .sqlite, .sqlite3 or .db)")
        if not database.tables:
            raise IngestError(f"No tables found in {self.path}")

    def _load_csv(self, database):
        try:
            df = pd.read_csv(self.path, dtype=str, keep_default_na=False, na_values=[""])
        except pd.errors.EmptyDataError as exc:
            raise IngestError(f"Empty file: {self.path}") from exc
        except (pd.errors.ParserError, UnicodeDecodeError) as exc:
            raise IngestError(f"Could not parse {self.path}: {exc}") from exc

        headers = [str(col) for col in df.columns]
        logger.info("loading %s: %d rows, %d columns", self.path, len(df), len(headers))
        try:
            database.create_table_from_rows(self.stem, headers, frame_rows(df))
        except EngineError as exc:
            raise IngestError(f"Could not load {self.path}: {exc.original}") from exc

    def _load_sqlite(self, database):
        try:
            database.restore_from(self.path)
        except sqlite3.Error as exc:
            raise IngestError(f"Could not open {self.path}: {exc}") from exc

    # ---------- export ----------
    def write_table(self, database):
        """Write the current table to this path as CSV, without the added key column."""
        table = database.current_table
        df = pd.read_sql_query(f"SELECT * FROM {quote_ident(table)}", database.conn)
        if database.has_synthetic_key(table) and KEY_COLUMN in df.columns:
            df = df.drop(columns=[KEY_COLUMN])
        df.to_csv(self.path, index=False)
        logger.info("wrote %d rows of %s to %s", len(df), table, self.path)
