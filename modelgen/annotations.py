# modelgen/annotations.py
"""
Type directives embedded in column comments.

    @bigint              cast BIGINT as int even when bigints are typed as str
    @json(SomeType)      type expression for a JSON column
    @set / @set(T)       cast a SET column to a python set (element type T)
    @enum(SomeType)      type expression for an ENUM column

A directive starts at the beginning of the comment or after whitespace and its
kind ends at the first non-word character (`@bigint.` counts, `@bigints` does
not). The kind is matched case-insensitively. Anything that does not scan cleanly
(unknown kind, missing close paren) is skipped, never an error.
"""
from __future__ import annotations
from typing import List, Optional, Sequence

from modelgen.meta_models import Annotation, AnnotationKind

_KINDS = {k.value: k for k in AnnotationKind}


def _matching_paren(text: str, open_at: int) -> int:
    depth = 0
    for i in range(open_at, len(text)):
        ch = text[i]
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return i
    return -1


def parse_annotations(comment: Optional[str]) -> List[Annotation]:
    text = comment or ""
    n = len(text)
    found: List[Annotation] = []
    i = 0
    while i < n:
        at = text.find("@", i)
        if at < 0:
            break
        if at > 0 and not text[at - 1].isspace():
            i = at + 1
            continue

        j = at + 1
        while j < n and text[j].isalpha():
            j += 1
        kind = _KINDS.get(text[at + 1:j].lower())
        if kind is None or (j < n and (text[j].isalnum() or text[j] == "_")):
            i = at + 1
            continue

        argument: Optional[str] = None
        end = j
        if j < n and text[j] == "(":
            close = _matching_paren(text, j)
            if close < 0:
                i = j + 1
                continue
            argument = text[j + 1:close]
            end = close + 1

        found.append(Annotation(kind=kind, argument=argument, full_annotation=text[at:end]))
        i = end
    return found


def find_annotation(annotations: Sequence[Annotation], kind: AnnotationKind) -> Optional[Annotation]:
    """First directive of `kind`; later ones of the same kind are ignored."""
    for a in annotations:
        if a.kind is kind:
            return a
    return None


def _with_argument(annotations: Sequence[Annotation], kind: AnnotationKind) -> Optional[Annotation]:
    a = find_annotation(annotations, kind)
    if a is None or a.argument is None or not a.argument.strip():
        return None
    return a


def get_bigint_annotation(annotations: Sequence[Annotation]) -> Optional[Annotation]:
    return find_annotation(annotations, AnnotationKind.BIGINT)


def get_set_annotation(annotations: Sequence[Annotation]) -> Optional[Annotation]:
    return find_annotation(annotations, AnnotationKind.SET)


def get_json_annotation(annotations: Sequence[Annotation]) -> Optional[Annotation]:
    # @json needs a type argument to mean anything
    return _with_argument(annotations, AnnotationKind.JSON)


def get_enum_annotation(annotations: Sequence[Annotation]) -> Optional[Annotation]:
    return _with_argument(annotations, AnnotationKind.ENUM)
