"""
db/sql.py
---------
Builds SQL text with positional placeholders ($1, $2, ...) from literal
fragments and the values that go between them. Values are never written
into the text; they travel separately for the driver to bind.

Example:
    >>> build_parameterized_query(["SELECT * FROM users WHERE id = ", ""], [42])
    Query(text='SELECT * FROM users WHERE id = $1', values=[42])
"""

from typing import Any, NamedTuple, Sequence


class Query(NamedTuple):
    """SQL text plus the values bound to its placeholders, in order."""

    text: str
    values: list


def build_parameterized_query(fragments: Sequence[str], values: Sequence[Any]) -> Query:
    """
    Join ``fragments`` with a fresh placeholder for each value.

    Placeholders are numbered from 1 in order of appearance; the same
    value passed twice gets two placeholders. Fragments left over after
    the values run out are appended as-is. Each value is placed after
    the fragment at the same index, so values beyond ``len(fragments)``
    have nowhere to go and are dropped.

    Args:
        fragments: Literal SQL pieces; normally ``len(values) + 1`` of them.
        values: Values to bind between the fragments.

    Returns:
        A Query of the final text and the list of bound values.
    """
    parts: list[str] = []
    params: list = []
    for i, fragment in enumerate(fragments):
        parts.append(fragment)
        if i < len(values):
            params.append(values[i])
            parts.append(f"${len(params)}")
    return Query("".join(parts), params)


def sql(fragments: Sequence[str], *values: Any) -> Query:
    """Shorthand for ``build_parameterized_query(fragments, values)``."""
    return build_parameterized_query(fragments, values)
