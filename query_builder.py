"""SQL text for every statement the editor issues.

Builders are pure: they return ``Statement`` tuples (sql, params) and never
touch a connection. Identifiers always go through ``quote_ident``; values are
bound as parameters.
"""

import ast
from collections import namedtuple
from dataclasses import dataclass
from typing import List, Optional, Sequence

Statement = namedtuple("Statement", ["sql", "params"])

DERIVED_PREFIX = "derived"
FILTERED_SUFFIX = "RegexFiltered"
KEY_COLUMN = "id"


@dataclass
class OrderSpec:
    column: Optional[str] = None
    ascending: bool = True

    def toggled(self, column: str) -> "OrderSpec":
        if self.column == column:
            return OrderSpec(column, not self.ascending)
        return OrderSpec(column, True)


def quote_ident(name: str) -> str:
    return '"' + str(name).replace('"', '""') + '"'


def derived_name(header: str) -> str:
    return f"{DERIVED_PREFIX}{header}"


def filtered_table_name(table: str) -> str:
    return f"{table}{FILTERED_SUFFIX}"


def order_clause(order: Optional[OrderSpec], fallback_rowid: bool = False) -> str:
    if order is None or order.column is None:
        return "ORDER BY rowid" if fallback_rowid else ""
    direction = "ASC" if order.ascending else "DESC"
    return f"ORDER BY {quote_ident(order.column)} {direction}"


# ---------- ingestion ----------

def has_key_column(headers: Sequence[str]) -> bool:
    # sqlite column names are case-insensitive
    return any(str(h).lower() == KEY_COLUMN for h in headers)


def create_table(table: str, headers: Sequence[str], with_key: bool = True) -> Statement:
    cols = [f"{quote_ident(h)} TEXT" for h in headers]
    if with_key:
        cols.insert(0, f"{KEY_COLUMN} INTEGER PRIMARY KEY")
    return Statement(f"CREATE TABLE {quote_ident(table)} ({', '.join(cols)})", ())


def insert_rows(table: str, headers: Sequence[str]) -> str:
    """Parameterised INSERT meant for executemany."""
    cols = ", ".join(quote_ident(h) for h in headers)
    marks = ", ".join("?" for _ in headers)
    return f"INSERT INTO {quote_ident(table)} ({cols}) VALUES ({marks})"


# ---------- reads ----------

def select_page(table: str, order: Optional[OrderSpec], limit: int, offset: int) -> Statement:
    parts = [f"SELECT * FROM {quote_ident(table)}"]
    clause = order_clause(order)
    if clause:
        parts.append(clause)
    parts.append("LIMIT ? OFFSET ?")
    return Statement(" ".join(parts), (int(limit), int(offset)))


def count_rows(table: str) -> Statement:
    return Statement(f"SELECT COUNT(*) FROM {quote_ident(table)}", ())


def table_info(table: str) -> Statement:
    return Statement(f"PRAGMA table_info({quote_ident(table)})", ())


def list_tables() -> Statement:
    return Statement(
        "SELECT name FROM sqlite_master WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY rowid",
        (),
    )


def rowid_at(table: str, order: Optional[OrderSpec], position: int) -> Statement:
    parts = [f"SELECT rowid FROM {quote_ident(table)}"]
    clause = order_clause(order)
    if clause:
        parts.append(clause)
    parts.append("LIMIT 1 OFFSET ?")
    return Statement(" ".join(parts), (int(position),))


def exact_search(table: str, column: str, value: str, order: Optional[OrderSpec], after_row: int) -> Statement:
    """First 1-based rank under ``order`` whose ``column`` equals ``value`` and rank > ``after_row``."""
    col = quote_ident(column)
    ordering = order_clause(order, fallback_rowid=True)
    sql = (
        f"SELECT rownum FROM "
        f"(SELECT ROW_NUMBER() OVER ({ordering}) AS rownum, {col} FROM {quote_ident(table)}) "
        f"WHERE {col} = ? AND rownum > ? LIMIT 1"
    )
    return Statement(sql, (value, int(after_row)))


# ---------- mutations ----------

def update_cell(table: str, column: str, rowid: int, value) -> Statement:
    return Statement(
        f"UPDATE {quote_ident(table)} SET {quote_ident(column)} = ? WHERE rowid = ?",
        (value, int(rowid)),
    )


def regex_filter(table: str, column: str, pattern: str) -> Statement:
    new_table = filtered_table_name(table)
    sql = (
        f"CREATE TABLE {quote_ident(new_table)} AS "
        f"SELECT * FROM {quote_ident(table)} WHERE {quote_ident(column)} REGEXP ?"
    )
    return Statement(sql, (pattern,))


def add_column(table: str, column: str, kind: str = "TEXT") -> Statement:
    return Statement(f"ALTER TABLE {quote_ident(table)} ADD COLUMN {quote_ident(column)} {kind}", ())


def regex_transform_no_capture(table: str, column: str, pattern: str) -> List[Statement]:
    derived = derived_name(column)
    return [
        add_column(table, derived),
        Statement(
            f"UPDATE {quote_ident(table)} SET {quote_ident(derived)} = "
            f"regexp_transform_no_capture_group(?, {quote_ident(column)})",
            (pattern,),
        ),
    ]


def copy_column(table: str, column: str) -> List[Statement]:
    derived = derived_name(column)
    return [
        add_column(table, derived),
        Statement(f"UPDATE {quote_ident(table)} SET {quote_ident(derived)} = {quote_ident(column)}", ()),
    ]


def cast_column(table: str, column: str, kind: str) -> List[Statement]:
    if kind not in ("INT", "TEXT"):
        raise ValueError(f"Unsupported cast kind: {kind}")
    derived = f"{kind}_{column}"
    return [
        add_column(table, derived, kind),
        Statement(
            f"UPDATE {quote_ident(table)} SET {quote_ident(derived)} = CAST({quote_ident(column)} AS {kind})",
            (),
        ),
    ]


def text_to_int(table: str, column: str) -> List[Statement]:
    return cast_column(table, column, "INT")


def int_to_text(table: str, column: str) -> List[Statement]:
    return cast_column(table, column, "TEXT")


def delete_column(table: str, column: str) -> Statement:
    return Statement(f"ALTER TABLE {quote_ident(table)} DROP COLUMN {quote_ident(column)}", ())


def rename_column(table: str, column: str, new_column: str) -> Statement:
    return Statement(
        f"ALTER TABLE {quote_ident(table)} RENAME COLUMN {quote_ident(column)} TO {quote_ident(new_column)}",
        (),
    )


def delete_table(table: str) -> Statement:
    return Statement(f"DROP TABLE {quote_ident(table)}", ())


def rename_table(table: str, new_table: str) -> Statement:
    return Statement(f"ALTER TABLE {quote_ident(table)} RENAME TO {quote_ident(new_table)}", ())


# ---------- arithmetic ----------

MATH_VARIABLE = "x"

_BIN_OPS = {
    ast.Add: "+",
    ast.Sub: "-",
    ast.Mult: "*",
    ast.Div: "/",
    ast.Mod: "%",
}

_UNARY_OPS = {
    ast.USub: "-",
    ast.UAdd: "+",
}


def _render_math(node, column_sql: str) -> str:
    if isinstance(node, ast.BinOp):
        op = _BIN_OPS.get(type(node.op))
        if op is None:
            raise ValueError(f"Unsupported operator: {type(node.op).__name__}")
        left = _render_math(node.left, column_sql)
        right = _render_math(node.right, column_sql)
        return f"({left} {op} {right})"
    if isinstance(node, ast.UnaryOp):
        op = _UNARY_OPS.get(type(node.op))
        if op is None:
            raise ValueError(f"Unsupported operator: {type(node.op).__name__}")
        return f"({op}{_render_math(node.operand, column_sql)})"
    if isinstance(node, ast.Constant):
        if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
            raise ValueError(f"Unsupported literal: {node.value!r}")
        return repr(node.value)
    if isinstance(node, ast.Name):
        if node.id != MATH_VARIABLE:
            raise ValueError(f"Unknown name '{node.id}', use '{MATH_VARIABLE}' for the column value")
        return column_sql
    raise ValueError(f"Unsupported expression: {type(node).__name__}")


def math_expression_sql(expression: str, column: str) -> str:
    """Render an arithmetic expression over ``x`` as SQL against ``column``."""
    text = (expression or "").strip()
    if not text:
        raise ValueError("Expression required")
    try:
        tree = ast.parse(text, mode="eval")
    except SyntaxError as exc:
        raise ValueError(f"Invalid expression: {exc.msg}") from exc
    return _render_math(tree.body, f"CAST({quote_ident(column)} AS REAL)")


def math_column(table: str, column: str, expression: str) -> List[Statement]:
    rendered = math_expression_sql(expression, column)
    derived = f"math_{column}"
    return [
        add_column(table, derived, "REAL"),
        Statement(f"UPDATE {quote_ident(table)} SET {quote_ident(derived)} = {rendered}", ()),
    ]
