"""
Selection of the column used to split an UPDATE into ranges.

The table definition is read once with ``SHOW CREATE TABLE`` and parsed into
a TableDefinition. The split column is then chosen by policy, first match wins:

1. single-column PRIMARY KEY on an integer NOT NULL column
2. single-column UNIQUE KEY on an integer NOT NULL column (declaration order)
3. AUTO_INCREMENT integer NOT NULL column

Multi-column keys never qualify. The chosen column's MIN/MAX are then read
with one aggregate query.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any

from utils.sql_safety import quote_identifier, quote_schema_table
from utils.tracing import trace_function

from .errors import NoUsableColumnError

logger = logging.getLogger(__name__)

_NAME = r"[`'\"](?P<name>[^`'\"]+)[`'\"]"
COLUMN_LINE = re.compile(rf"^\s*{_NAME}\s+(?P<type>[^\s,]+)(?P<rest>.*)$", re.IGNORECASE)
PRIMARY_KEY_LINE = re.compile(r"^\s*primary\s+key\s*(?P<cols>\(.*)$", re.IGNORECASE)
UNIQUE_KEY_LINE = re.compile(
    rf"^\s*unique\s+(?:key|index)\s+{_NAME}\s*(?P<cols>\(.*)$", re.IGNORECASE
)
INTEGER_TYPE = re.compile(r"^(tiny|small|medium|big)?int(eger)?\b", re.IGNORECASE)
NOT_NULL = re.compile(r"\bnot\s+null\b", re.IGNORECASE)
AUTO_INCREMENT = re.compile(r"\bauto_increment\b", re.IGNORECASE)


@dataclass
class ColumnDefinition:
    name: str
    data_type: str
    not_null: bool = False
    auto_increment: bool = False

    @property
    def is_integer(self) -> bool:
        return is_integer_type(self.data_type)

    @property
    def splittable(self) -> bool:
        return self.is_integer and self.not_null


@dataclass
class TableDefinition:
    """Structured view of a ``SHOW CREATE TABLE`` result."""

    columns: dict[str, ColumnDefinition] = field(default_factory=dict)
    primary_key: list[str] = field(default_factory=list)
    unique_keys: dict[str, list[str]] = field(default_factory=dict)

    def column(self, name: str) -> ColumnDefinition | None:
        return self.columns.get(name.lower())


@dataclass(frozen=True)
class SplitColumn:
    name: str
    min_value: int
    max_value: int


def is_integer_type(type_name: str) -> bool:
    """True for the integer family: tinyint, smallint, mediumint, int, integer, bigint."""
    return INTEGER_TYPE.match(type_name.strip()) is not None


def _column_list(text: str) -> list[str]:
    """Parse ``(`a`,`b`(10) DESC)...`` into ['a', 'b']."""
    depth = 0
    end = None
    for i, ch in enumerate(text):
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                end = i
                break
    if end is None:
        return []

    columns = []
    for part in re.split(r",(?![^(]*\))", text[1:end]):
        part = re.sub(r"\(\d+\)", "", part).strip()
        part = re.sub(r"\s+(asc|desc)$", "", part, flags=re.IGNORECASE)
        part = part.strip("`'\" ")
        if part:
            columns.append(part.lower())
    return columns


def parse_table_definition(ddl: str) -> TableDefinition:
    """Parse the text of ``SHOW CREATE TABLE`` into a TableDefinition."""
    definition = TableDefinition()

    for line in ddl.splitlines()[1:]:
        stripped = line.strip()
        if not stripped or stripped.startswith(")"):
            continue

        pk = PRIMARY_KEY_LINE.match(stripped)
        if pk:
            definition.primary_key = _column_list(pk.group("cols"))
            continue

        uk = UNIQUE_KEY_LINE.match(stripped)
        if uk:
            definition.unique_keys[uk.group("name").lower()] = _column_list(uk.group("cols"))
            continue

        col = COLUMN_LINE.match(stripped)
        if col:
            name = col.group("name").lower()
            rest = col.group("rest")
            definition.columns[name] = ColumnDefinition(
                name=name,
                data_type=col.group("type").lower(),
                not_null=NOT_NULL.search(rest) is not None,
                auto_increment=AUTO_INCREMENT.search(rest) is not None,
            )

    return definition


def _single_splittable(definition: TableDefinition, key_columns: list[str]) -> str:
    if len(key_columns) != 1:
        return ""
    column = definition.column(key_columns[0])
    if column is not None and column.splittable:
        return column.name
    return ""


def find_column_name_for_split(definition: TableDefinition) -> str:
    """Apply the selection policy; return the column name or an empty string."""
    column_name = _single_splittable(definition, definition.primary_key)
    if column_name:
        return column_name

    for key_columns in definition.unique_keys.values():
        column_name = _single_splittable(definition, key_columns)
        if column_name:
            return column_name

    for column in definition.columns.values():
        if column.auto_increment and column.splittable:
            return column.name

    return ""


@trace_function("select_split_column", component="column_selector")
def select_split_column(cursor: Any, database: str, table: str) -> SplitColumn:
    """
    Choose the split column of a table and read its current range.

    Args:
        cursor: DB-API cursor on the target database
        database: Database name, used in error messages
        table: Table name as written in the UPDATE statement

    Returns:
        SplitColumn with the column name and its MIN/MAX values

    Raises:
        NoUsableColumnError: If no column qualifies or the table is empty
    """
    qualified = f"{database}.{table}"
    quoted_table = quote_schema_table(table)

    query = f"SHOW CREATE TABLE {quoted_table}"
    logger.debug(f"Exec SQL: {query}")
    cursor.execute(query)
    row = cursor.fetchone()
    if not row or len(row) < 2:
        raise NoUsableColumnError(qualified)

    column_name = find_column_name_for_split(parse_table_definition(row[1]))
    if not column_name:
        raise NoUsableColumnError(qualified)

    quoted_column = quote_identifier(column_name)
    query = f"SELECT MIN({quoted_column}), MAX({quoted_column}) FROM {quoted_table}"
    logger.debug(f"Exec SQL: {query}")
    cursor.execute(query)
    row = cursor.fetchone()
    if not row or row[0] is None or row[1] is None:
        raise NoUsableColumnError(qualified)

    return SplitColumn(name=column_name, min_value=int(row[0]), max_value=int(row[1]))
