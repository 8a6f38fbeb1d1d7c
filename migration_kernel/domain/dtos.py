"""
DTOs -- Pure domain data transfer objects shared across the pipeline.

ValidationError is the value every reader and validator returns instead of
raising. It is immutable and always carries a machine-readable code.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ValidationError:
    """
    A single validation error.

    Contract:
        Carries a machine-readable code, human-readable message, optional
        field name, optional source location and optional details dict.

    Non-goals:
        - Does NOT raise exceptions -- it IS the error representation.
    """

    code: str
    message: str
    field: str | None = None
    line: int | None = None
    column: int | None = None
    details: dict[str, Any] | None = None

    def __str__(self) -> str:
        if self.line is not None:
            return f"Line {self.line}, Position {self.column or 0}: {self.message}"
        return self.message
