# cvqual/errors.py
"""
Diagnostic Types and Reporting Module

Every finding of the analyzer is a :class:`Diagnostic` record accumulated by
a :class:`DiagnosticCollector`; analysis never stops on the first finding.
Exceptions are reserved for infrastructure failures (unparseable input,
broken configuration).

Architecture Overview:
─────────────────────
┌─────────────────────────────────────────────────────────────────────────────┐
│  Reported findings (Diagnostic)          Raised failures (CvqualError)      │
├─────────────────────────────────────────────────────────────────────────────┤
│  DuplicateDeclaration      CVQ-1001      CvqualError (base)                 │
│  NonModifiableTarget       CVQ-2001      ├── FrontendError                  │
│  ConstViolation            CVQ-2002      └── ConfigError                    │
│  NoViableOverload          CVQ-3001                                         │
│  IllegalConstantPlacement  CVQ-4001                                         │
│  MultipleEvaluationHazard  CVQ-5001                                         │
│  PrecedenceHazard          CVQ-5002                                         │
│  ParseFailure              CVQ-9001                                         │
└─────────────────────────────────────────────────────────────────────────────┘

Example Usage:
──────────────
    from cvqual.errors import DiagnosticCollector, DiagnosticKind

    collector = DiagnosticCollector()
    collector.report(
        DiagnosticKind.NON_MODIFIABLE_TARGET,
        "assign-through-pointer-to-const",
        entity="p",
        location=Loc("a.cpp", 12, 3),
        message="cannot assign through 'p': pointee is const",
    )
    for diag in collector.diagnostics:
        print(diag.to_gcc_format())
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum, unique
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from cvqual.nodes import Loc


# ═══════════════════════════════════════════════════════════════════════════════
# DIAGNOSTIC KINDS AND SEVERITY
# ═══════════════════════════════════════════════════════════════════════════════

@unique
class DiagnosticKind(Enum):
    """Reason codes.  The value is the stable name used in all output."""

    DUPLICATE_DECLARATION = "DuplicateDeclaration"
    NON_MODIFIABLE_TARGET = "NonModifiableTarget"
    CONST_VIOLATION = "ConstViolation"
    NO_VIABLE_OVERLOAD = "NoViableOverload"
    ILLEGAL_CONSTANT_PLACEMENT = "IllegalConstantPlacement"
    MULTIPLE_EVALUATION_HAZARD = "MultipleEvaluationHazard"
    PRECEDENCE_HAZARD = "PrecedenceHazard"
    PARSE_FAILURE = "ParseFailure"

    @classmethod
    def parse(cls, text: str) -> "DiagnosticKind":
        """Accept either the value (``ConstViolation``) or the member name."""
        for kind in cls:
            if text == kind.value or text.upper() == kind.name:
                return kind
        raise ValueError(f"unknown diagnostic kind: {text!r}")


@unique
class Severity(Enum):
    """Severity levels, most severe first."""

    ERROR = "error"
    WARNING = "warning"
    STYLE = "style"
    INFORMATION = "information"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def is_error(self) -> bool:
        return self is Severity.ERROR


_SEVERITY_RANK = {
    Severity.ERROR: 0,
    Severity.WARNING: 1,
    Severity.STYLE: 2,
    Severity.INFORMATION: 3,
}


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR CODES
# ═══════════════════════════════════════════════════════════════════════════════

class ErrorCode:
    """
    Structured error code ``CVQ-NNNN``.

    Ranges:
      - 1000-1999: Declaration errors
      - 2000-2999: Qualification errors
      - 3000-3999: Resolution errors
      - 4000-4999: Constant placement errors
      - 5000-5999: Macro hazards
      - 9000-9999: Front-end / infrastructure
    """

    __slots__ = ("prefix", "number", "kind", "default_severity")

    def __init__(
        self,
        prefix: str,
        number: int,
        kind: DiagnosticKind,
        default_severity: Severity = Severity.ERROR,
    ) -> None:
        self.prefix = prefix
        self.number = number
        self.kind = kind
        self.default_severity = default_severity

    @property
    def code(self) -> str:
        return f"{self.prefix}-{self.number:04d}"

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"ErrorCode({self.code!r}, {self.kind.value})"

    def __hash__(self) -> int:
        return hash((self.prefix, self.number))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ErrorCode):
            return self.prefix == other.prefix and self.number == other.number
        if isinstance(other, str):
            return self.code == other
        return False


class CvqualErrorCodes:
    """Predefined error codes, one per diagnostic kind."""

    DUPLICATE_DECLARATION = ErrorCode(
        "CVQ", 1001, DiagnosticKind.DUPLICATE_DECLARATION
    )
    NON_MODIFIABLE_TARGET = ErrorCode(
        "CVQ", 2001, DiagnosticKind.NON_MODIFIABLE_TARGET
    )
    CONST_VIOLATION = ErrorCode(
        "CVQ", 2002, DiagnosticKind.CONST_VIOLATION
    )
    NO_VIABLE_OVERLOAD = ErrorCode(
        "CVQ", 3001, DiagnosticKind.NO_VIABLE_OVERLOAD
    )
    ILLEGAL_CONSTANT_PLACEMENT = ErrorCode(
        "CVQ", 4001, DiagnosticKind.ILLEGAL_CONSTANT_PLACEMENT
    )
    MULTIPLE_EVALUATION_HAZARD = ErrorCode(
        "CVQ", 5001, DiagnosticKind.MULTIPLE_EVALUATION_HAZARD, Severity.WARNING
    )
    PRECEDENCE_HAZARD = ErrorCode(
        "CVQ", 5002, DiagnosticKind.PRECEDENCE_HAZARD, Severity.STYLE
    )
    PARSE_FAILURE = ErrorCode(
        "CVQ", 9001, DiagnosticKind.PARSE_FAILURE
    )

    @classmethod
    def for_kind(cls, kind: DiagnosticKind) -> ErrorCode:
        return getattr(cls, kind.name)

    @classmethod
    def all(cls) -> List[ErrorCode]:
        return [cls.for_kind(k) for k in DiagnosticKind]


# ═══════════════════════════════════════════════════════════════════════════════
# DIAGNOSTIC RECORDS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ErrorNote:
    """
    Additional note attached to a diagnostic, such as where the conflicting
    declaration lives or what a macro call expands to.
    """

    message: str
    location: Optional[Loc] = None
    label: str = "note"

    def __str__(self) -> str:
        prefix = f"{self.label}: " if self.label else ""
        if self.location:
            return f"{self.location}: {prefix}{self.message}"
        return f"{prefix}{self.message}"


@dataclass(frozen=True)
class Diagnostic:
    """
    Structured finding.

    Attributes:
        kind: Reason code (the legality verdict's cause)
        location: Primary source location
        message_key: Stable machine-readable sub-reason (e.g. "binding-drops-const")
        entity: Name of the offending entity
        message: Human-readable description
        severity: How serious the issue is
        notes: Secondary locations / context
        hint: Suggested fix
    """

    kind: DiagnosticKind
    location: Optional[Loc]
    message_key: str
    entity: str
    message: str = ""
    severity: Severity = Severity.ERROR
    notes: Tuple[ErrorNote, ...] = ()
    hint: str = ""

    @property
    def code(self) -> ErrorCode:
        return CvqualErrorCodes.for_kind(self.kind)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: Dict[str, Any] = {
            "kind": self.kind.value,
            "code": self.code.code,
            "severity": self.severity.value,
            "messageKey": self.message_key,
            "entity": self.entity,
            "message": self.message,
        }
        if self.location:
            result["location"] = {
                "file": self.location.file,
                "line": self.location.line,
                "column": self.location.col,
            }
        if self.notes:
            result["notes"] = [
                {
                    "message": n.message,
                    "label": n.label,
                    "location": str(n.location) if n.location else None,
                }
                for n in self.notes
            ]
        if self.hint:
            result["hint"] = self.hint
        return result

    def to_gcc_format(self) -> str:
        """Format as GCC-style diagnostic string."""
        loc_str = str(self.location) if self.location else "<unknown>"
        main = (
            f"{loc_str}: {self.severity.value}: {self.message} "
            f"[{self.kind.value}/{self.message_key}]"
        )
        lines = [main]
        lines.extend(str(note) for note in self.notes)
        if self.hint:
            lines.append(f"hint: {self.hint}")
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.to_gcc_format()


# ═══════════════════════════════════════════════════════════════════════════════
# SUPPRESSIONS
# ═══════════════════════════════════════════════════════════════════════════════

class SuppressionManager:
    """
    Manages diagnostic suppressions.

    Suppression sources:
    1. Inline comments: ``// cvqual-suppress ConstViolation`` (same or next line)
    2. Global suppressions: kinds or codes suppressed everywhere
    """

    _INLINE = re.compile(r"//\s*cvqual-suppress\s+([\w-]+(?:[ \t]+[\w-]+)*)")

    def __init__(self) -> None:
        # (file, line) -> suppressed tags ("*" for all)
        self._inline: Dict[Tuple[str, int], Set[str]] = {}
        self._global: Set[str] = set()

    def add_global_suppression(self, tag: str) -> None:
        """Suppress a kind (``ConstViolation``) or code (``CVQ-2002``)."""
        self._global.add(tag)

    def add_inline_suppression(self, file: str, line: int, tag: str) -> None:
        self._inline.setdefault((file, line), set()).add(tag)

    def load_inline_suppressions_from_source(self, source: str, filename: str) -> None:
        """Scan source text for suppression comments."""
        for line_num, line in enumerate(source.splitlines(), start=1):
            match = self._INLINE.search(line)
            if match:
                for tag in match.group(1).split():
                    # Suppression applies to this line and the next
                    self.add_inline_suppression(filename, line_num, tag)
                    self.add_inline_suppression(filename, line_num + 1, tag)

    @staticmethod
    def _matches(diag: Diagnostic, tags: Set[str]) -> bool:
        return (
            "*" in tags
            or diag.kind.value in tags
            or diag.code.code in tags
        )

    def is_suppressed(self, diag: Diagnostic) -> bool:
        if self._matches(diag, self._global):
            return True
        if diag.location is None:
            return False
        tags = self._inline.get((diag.location.file, diag.location.line))
        return bool(tags) and self._matches(diag, tags)


# ═══════════════════════════════════════════════════════════════════════════════
# DIAGNOSTIC COLLECTOR
# ═══════════════════════════════════════════════════════════════════════════════

class DiagnosticCollector:
    """
    Collects diagnostics in report order.

    The analyzer reports phase by phase, and each phase walks the unit in
    source order, so report order is the output order.
    """

    def __init__(
        self,
        *,
        suppression_manager: Optional[SuppressionManager] = None,
        min_severity: Severity = Severity.INFORMATION,
        enabled: Optional[Set[DiagnosticKind]] = None,
    ) -> None:
        self._diagnostics: List[Diagnostic] = []
        self._suppression = suppression_manager or SuppressionManager()
        self._min_severity = min_severity
        self._enabled = enabled

    def report(
        self,
        kind: DiagnosticKind,
        message_key: str,
        *,
        entity: str = "",
        location: Optional[Loc] = None,
        message: str = "",
        notes: Iterable[ErrorNote] = (),
        hint: str = "",
        severity: Optional[Severity] = None,
    ) -> Optional[Diagnostic]:
        """
        Record a finding.  Returns the diagnostic, or ``None`` when it was
        filtered by kind, severity or suppression.
        """
        if self._enabled is not None and kind not in self._enabled:
            return None
        severity = severity or CvqualErrorCodes.for_kind(kind).default_severity
        if severity.rank > self._min_severity.rank:
            return None

        diag = Diagnostic(
            kind=kind,
            location=location,
            message_key=message_key,
            entity=entity,
            message=message or message_key.replace("-", " "),
            severity=severity,
            notes=tuple(notes),
            hint=hint,
        )
        if self._suppression.is_suppressed(diag):
            return None
        self._diagnostics.append(diag)
        return diag

    @property
    def diagnostics(self) -> List[Diagnostic]:
        return list(self._diagnostics)

    def has_errors(self) -> bool:
        return any(d.severity.is_error() for d in self._diagnostics)

    def error_count(self) -> int:
        return sum(1 for d in self._diagnostics if d.severity.is_error())

    def __len__(self) -> int:
        return len(self._diagnostics)


# ═══════════════════════════════════════════════════════════════════════════════
# EXCEPTION CLASSES
# ═══════════════════════════════════════════════════════════════════════════════

class CvqualError(Exception):
    """
    Base exception for infrastructure failures.

    Analysis findings are never raised; they are reported through
    :class:`DiagnosticCollector`.
    """

    def __init__(
        self,
        message: str,
        location: Optional[Loc] = None,
        cause: Optional[Exception] = None,
        hint: str = "",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.location = location
        self.cause = cause
        self.hint = hint

    def __str__(self) -> str:
        if self.location is not None:
            return f"{self.location}: {self.message}"
        return self.message


class FrontendError(CvqualError):
    """The source text could not be turned into a unit."""

    def to_diagnostic(self) -> Diagnostic:
        return Diagnostic(
            kind=DiagnosticKind.PARSE_FAILURE,
            location=self.location,
            message_key="unparseable-input",
            entity="",
            message=self.message,
            severity=Severity.ERROR,
            hint=self.hint,
        )


class ConfigError(CvqualError):
    """Invalid analyzer configuration."""
