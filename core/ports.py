# core/ports.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Protocol, Dict, Any, List, Optional, Sequence


@dataclass
class ExecutedQuery:
    """Result of one round trip: rows keyed by column label, in select order."""
    rows: List[Dict[str, Any]] = field(default_factory=list)
    fields: List[str] = field(default_factory=list)
    insert_id: Optional[Any] = None
    rows_affected: int = 0


class Transport(Protocol):
    """
    Executes one statement. `sql_text` uses `?` placeholders, one per entry of `params`.
    Connection lifecycle, pooling and transactions belong to the implementation.
    """
    async def execute(self, sql_text: str, params: Sequence[Any]) -> ExecutedQuery: ...
