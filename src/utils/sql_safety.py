"""
SQL safety utilities for preventing SQL injection.

Provides identifier splitting and quoting for safe SQL query construction
against MySQL-compatible servers. Any name MySQL accepts can be quoted:
digits first, hyphens, spaces and non-ASCII characters included.
"""


def split_qualified_name(name: str) -> list[str]:
    """
    Split a ``table`` or ``schema.table`` reference into unquoted parts.

    Dots inside backtick-quoted parts do not separate, and a doubled
    backtick inside quotes stands for one literal backtick.

    Args:
        name: Reference such as ``orders``, `` `order-items` `` or `` `db`.`t` ``

    Returns:
        List of unquoted name parts

    Raises:
        ValueError: If a quote is unbalanced or a part is empty
    """
    parts = []
    current = []
    quoted = False
    i = 0
    while i < len(name):
        ch = name[i]
        if quoted:
            if ch == "`":
                if i + 1 < len(name) and name[i + 1] == "`":
                    current.append("`")
                    i += 2
                    continue
                quoted = False
            else:
                current.append(ch)
        elif ch == "`":
            quoted = True
        elif ch == ".":
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
        i += 1

    if quoted:
        raise ValueError(f"Unbalanced backtick in SQL identifier: {name!r}")
    parts.append("".join(current).strip())

    if not all(parts):
        raise ValueError(f"Empty part in SQL identifier: {name!r}")
    return parts


def quote_identifier(identifier: str) -> str:
    """
    Backtick-quote a single MySQL identifier.

    Outer backticks are removed first; backticks inside the name are doubled.

    Args:
        identifier: The identifier to quote (column name, etc.), optionally
            already wrapped in backticks

    Returns:
        Backtick-quoted identifier safe for use in SQL

    Raises:
        ValueError: If the identifier is empty
    """
    name = identifier.strip()
    if len(name) >= 2 and name.startswith("`") and name.endswith("`"):
        name = name[1:-1].replace("``", "`")
    if not name:
        raise ValueError("SQL identifier cannot be empty")
    return "`" + name.replace("`", "``") + "`"


def quote_schema_table(schema_table: str) -> str:
    """
    Backtick-quote a MySQL ``table`` or ``schema.table`` reference.

    Args:
        schema_table: Table reference, optionally qualified and/or backtick-quoted

    Returns:
        Quoted reference such as `` `db`.`users` ``

    Raises:
        ValueError: If the reference is malformed or has more than two parts
    """
    parts = split_qualified_name(schema_table)
    if len(parts) > 2:
        raise ValueError(f"Invalid schema.table identifier: {schema_table!r}")
    return ".".join("`" + part.replace("`", "``") + "`" for part in parts)
