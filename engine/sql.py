# engine/sql.py
"""
Parameterized SQL fragments.

A fragment is text with one `?` placeholder per bound value. Fragments compose
by concatenation, so values never end up interpolated into the text. Identifiers
go through `bt()`, which is the only quoting applied to them.
"""
from __future__ import annotations
from typing import Any, Iterable, List, Sequence, Tuple


class Sql:
    __slots__ = ("text", "values")

    def __init__(self, text: str = "", values: Sequence[Any] = ()) -> None:
        self.text = text
        self.values: Tuple[Any, ...] = tuple(values)

    @property
    def sql(self) -> str:
        return self.text

    def is_empty(self) -> bool:
        return not self.text.strip()

    def __add__(self, other: "Sql") -> "Sql":
        if not isinstance(other, Sql):
            return NotImplemented
        return Sql(self.text + other.text, self.values + other.values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Sql):
            return NotImplemented
        return self.text == other.text and self.values == other.values

    def __hash__(self) -> int:
        return hash((self.text, self.values))

    def __repr__(self) -> str:
        return f"Sql({self.text!r}, {list(self.values)!r})"


empty = Sql()


def raw(text: str) -> Sql:
    return Sql(text)


def bind(value: Any) -> Sql:
    return Sql("?", (value,))


def join(parts: Iterable[Sql], separator: str = ", ") -> Sql:
    text: List[str] = []
    values: List[Any] = []
    for p in parts:
        text.append(p.text)
        values.extend(p.values)
    return Sql(separator.join(text), values)


def clauses(*parts: Sql) -> Sql:
    """Join statement parts with single spaces, skipping empty ones."""
    return join([p for p in parts if not p.is_empty()], " ")


def quote_identifier(name: str) -> str:
    return "`" + str(name).replace("`", "``") + "`"


def bt(*names: str) -> Sql:
    """Backtick-quoted, dot-separated identifier: bt('user', 'id') -> `user`.`id`"""
    return raw(".".join(quote_identifier(n) for n in names))
