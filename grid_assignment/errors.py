"""
Error type shared by the network model, the cost evaluator, the optimizer and
the network file reader.

A single exception class carries a `kind` discriminant instead of a subclass
per error family, so callers branch on `err.kind` and read the structured
payload (offending names, line number, list of violations).
"""

from typing import List, Optional, Sequence
from enum import Enum


class ErrorKind(Enum):
    SYNTAX = "syntax"
    ORDERING = "ordering"
    INVALID_DATA = "invalid_data"
    NOT_FOUND = "not_found"
    LOGIC = "logic"


_KIND_LABELS = {
    ErrorKind.SYNTAX: "Syntax error",
    ErrorKind.ORDERING: "Ordering error",
    ErrorKind.INVALID_DATA: "Invalid data",
    ErrorKind.NOT_FOUND: "Not found",
    ErrorKind.LOGIC: "Logic error",
}


class NetworkError(Exception):
    """Raised by every core operation that rejects its input or state."""

    def __init__(
        self,
        kind: ErrorKind,
        details: str,
        names: Sequence[str] = (),
        line: Optional[int] = None,
        violations: Optional[List[str]] = None,
    ):
        super().__init__(details)
        self.kind = kind
        self.details = details
        self.names = tuple(names)
        self.line = line
        self.violations = list(violations or [])

    def __str__(self) -> str:
        label = _KIND_LABELS[self.kind]
        prefix = f"{label} (line {self.line})" if self.line else label
        message = f"{prefix}: {self.details}"
        if self.violations:
            message += "".join(f"\n\t- {v}" for v in self.violations)
        return message

    def __repr__(self):
        return f"NetworkError(kind={self.kind.value}, details={self.details!r}, line={self.line})"

    @classmethod
    def invalid_data(cls, details: str, *names: str) -> "NetworkError":
        return cls(ErrorKind.INVALID_DATA, details, names=names)

    @classmethod
    def not_found(cls, element: str, name: str) -> "NetworkError":
        return cls(ErrorKind.NOT_FOUND, f"{element.capitalize()} '{name}' not found", names=(name,))

    @classmethod
    def logic(cls, details: str, *names: str, violations: Optional[List[str]] = None) -> "NetworkError":
        return cls(ErrorKind.LOGIC, details, names=names, violations=violations)
