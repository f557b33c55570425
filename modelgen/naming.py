# modelgen/naming.py
from __future__ import annotations
import keyword
import re

_WORDS = re.compile(r"[A-Z]+(?=[A-Z][a-z]|\d|\b|_)|[A-Z]?[a-z]+|[A-Z]+|\d+")


def _words(name: str) -> list[str]:
    return _WORDS.findall(name or "")


def snake_case(name: str) -> str:
    """`createdAt` / `Created At` / `created-at` -> `created_at`; always a valid identifier."""
    out = "_".join(w.lower() for w in _words(name)) or "field"
    if out[0].isdigit():
        out = f"_{out}"
    if keyword.iskeyword(out):
        out = f"{out}_"
    return out


def pascal_case(name: str) -> str:
    """`user_account` -> `UserAccount`."""
    out = "".join(w[:1].upper() + w[1:].lower() for w in _words(name)) or "Model"
    if out[0].isdigit():
        out = f"_{out}"
    return out
