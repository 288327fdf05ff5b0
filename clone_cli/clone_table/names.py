"""Name-list parsing and identifier quoting."""

from __future__ import annotations

from collections.abc import Sequence

from clone_cli.shared.exceptions import ConfigurationError


def split_names(raw: str | None, delimiter: str) -> tuple[str, ...]:
    """Split a delimiter-separated identifier list into trimmed tokens.

    Line breaks are removed before splitting, so lists pasted one name per
    line (``"Sales,\\n  Customer"``) parse the same as single-line ones. A
    trailing delimiter is optional and blank tokens are dropped; empty input
    yields an empty tuple.
    """
    if len(delimiter) != 1:
        raise ConfigurationError(f"Delimiter must be a single character, got {delimiter!r}.")
    if not raw:
        return ()
    flattened = raw.replace("\r", "").replace("\n", "")
    tokens = (token.strip() for token in flattened.split(delimiter))
    return tuple(token for token in tokens if token)


def parse_name_list(
    schema_names: str | None,
    table_names: str | None,
    delimiter: str = ",",
) -> tuple[tuple[str, ...], tuple[str, ...]]:
    """Return ``(schemas, tables)`` token sequences for the resolver."""
    return split_names(schema_names, delimiter), split_names(table_names, delimiter)


def quote_name(identifier: str) -> str:
    """Bracket-quote an identifier the way ``QUOTENAME`` does."""
    return "[" + identifier.replace("]", "]]") + "]"


def qualified_name(schema: str, table: str) -> str:
    return f"{quote_name(schema)}.{quote_name(table)}"


def join_quoted(names: Sequence[str]) -> str:
    return ", ".join(quote_name(name) for name in names)
