"""
Recognition and rewriting of ``UPDATE <table> SET ... [WHERE ...]`` statements.

Only this narrow statement shape is understood. Quoted literals and
parenthesized sub-expressions are skipped when looking for the top-level
WHERE, ORDER BY and LIMIT keywords, so a ``WHERE`` inside a string or a
subquery does not count.
"""

import re

from utils.sql_safety import quote_identifier, quote_schema_table

from .errors import InvalidUpdateQueryError

UPDATE_PATTERN = re.compile(r"^\s*update\s+(.+?)\s+set\s.+$", re.IGNORECASE | re.DOTALL)
LIMIT_PATTERN = re.compile(r"\blimit\s+[0-9]+\s*$", re.IGNORECASE)
ORDER_BY_PATTERN = re.compile(r"\border\s+by\b", re.IGNORECASE)
UPDATE_MODIFIERS = {"low_priority", "ignore"}
# backtick-quoted runs (`` escapes a backtick) or unquoted non-space characters;
# an unterminated quote runs to the end so validation can reject it
TABLE_TOKEN = re.compile(r"(?:`(?:[^`]|``)*`?|[^\s`])+")

_QUOTES = {"'", '"', "`"}


def normalize_query(query: str) -> str:
    """Trim surrounding whitespace and semicolons."""
    return query.strip(" \t\r\n;")


def _mask_literals(sql: str) -> str:
    """
    Replace the contents of quoted literals and parenthesized groups with spaces.

    The result has the same length as the input, so offsets found in the
    masked text are valid in the original.
    """
    masked = []
    quote = None
    depth = 0
    i = 0
    while i < len(sql):
        ch = sql[i]
        if quote:
            if ch == "\\" and quote != "`" and i + 1 < len(sql):
                masked.append("  ")
                i += 2
                continue
            if ch == quote:
                # doubled quote is an escaped quote
                if i + 1 < len(sql) and sql[i + 1] == quote:
                    masked.append("  ")
                    i += 2
                    continue
                quote = None
            masked.append(" ")
        elif ch in _QUOTES:
            quote = ch
            masked.append(" ")
        elif ch == "(":
            depth += 1
            masked.append(" ")
        elif ch == ")":
            depth = max(depth - 1, 0)
            masked.append(" ")
        else:
            masked.append(" " if depth else ch)
        i += 1
    return "".join(masked)


def find_where(sql: str) -> int:
    """Return the offset of the top-level WHERE keyword, or -1."""
    match = re.search(r"\bwhere\b", _mask_literals(sql), re.IGNORECASE)
    return match.start() if match else -1


def find_order_by(sql: str) -> int:
    """Return the offset of the top-level ORDER BY clause, or -1."""
    match = ORDER_BY_PATTERN.search(_mask_literals(sql))
    return match.start() if match else -1


def includes_where(sql: str) -> bool:
    return find_where(sql) >= 0


def is_update_query(sql: str) -> bool:
    return UPDATE_PATTERN.match(sql) is not None


def is_limited_query(sql: str) -> bool:
    return LIMIT_PATTERN.search(_mask_literals(normalize_query(sql))) is not None


def get_update_table_name(sql: str) -> str:
    """
    Return the single target table of an UPDATE statement.

    Leading LOW_PRIORITY / IGNORE modifiers and a trailing alias are ignored.
    Multi-table targets (comma or JOIN) yield an empty string.
    """
    match = UPDATE_PATTERN.match(sql)
    if not match:
        return ""

    target = match.group(1).strip()
    masked = _mask_literals(target)
    if "," in masked or re.search(r"\bjoin\b", masked, re.IGNORECASE):
        return ""

    tokens = TABLE_TOKEN.findall(target)
    while tokens and tokens[0].lower() in UPDATE_MODIFIERS:
        tokens.pop(0)
    return tokens[0] if tokens else ""


def validate_update_query(query: str) -> tuple[str, str]:
    """
    Check that a statement can be split and resolve its table.

    Args:
        query: Raw UPDATE statement

    Returns:
        Tuple of (normalized query, table name)

    Raises:
        InvalidUpdateQueryError: For anything but a single-table UPDATE without LIMIT
    """
    normalized = normalize_query(query)
    if not is_update_query(normalized):
        raise InvalidUpdateQueryError("query must starts with 'UPDATE tablename SET ...'")
    if is_limited_query(normalized):
        raise InvalidUpdateQueryError("execute query has limit, its invalid")

    table = get_update_table_name(normalized)
    if not table:
        raise InvalidUpdateQueryError("query must starts with 'UPDATE tablename SET ...'")
    try:
        quote_schema_table(table)
    except ValueError as e:
        raise InvalidUpdateQueryError(f"invalid table name in query: {e}") from e
    return normalized, table


def build_split_update_sql(query: str, column: str, start: int, end: int) -> str:
    """
    Bound an UPDATE statement to ``column BETWEEN start AND end``.

    An existing WHERE predicate is parenthesized before the range is added,
    so ``OR`` conditions keep their meaning. A top-level ORDER BY clause is
    kept after the new condition.
    """
    bound = f"{quote_identifier(column)} BETWEEN {int(start)} AND {int(end)}"

    tail = ""
    order_at = find_order_by(query)
    if order_at >= 0:
        tail = " " + query[order_at:]
        query = query[:order_at].rstrip()

    where_at = find_where(query)
    if where_at < 0:
        return f"{query} WHERE {bound}{tail}"

    head = query[:where_at]
    predicate = query[where_at + len("where"):].strip()
    return f"{head}WHERE ({predicate}) AND {bound}{tail}"
