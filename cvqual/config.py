"""
Analyzer configuration.

Loadable from a JSON file::

    {
        "enabled": ["ConstViolation", "NonModifiableTarget"],
        "min_severity": "warning",
        "suppressed": ["CVQ-5002"],
        "report_precedence_hazards": true,
        "jobs": 4,
        "max_expression_depth": 200
    }

Every key is optional; command-line flags override file values.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Union

from cvqual.errors import ConfigError, DiagnosticKind, Severity, SuppressionManager

logger = logging.getLogger(__name__)


@dataclass
class AnalyzerConfig:
    """Tuning knobs for one analysis run."""
    enabled: Optional[List[str]] = None
    min_severity: str = "information"
    suppressed: List[str] = field(default_factory=list)
    report_precedence_hazards: bool = True
    jobs: int = 1
    max_expression_depth: int = 256

    def validate(self) -> List[str]:
        """Return a list of validation warnings (empty if valid)."""
        warnings: List[str] = []
        if self.jobs <= 0:
            warnings.append("jobs must be positive")
        if self.max_expression_depth <= 0:
            warnings.append("max_expression_depth must be positive")
        try:
            Severity(self.min_severity)
        except ValueError:
            warnings.append(f"unknown severity: {self.min_severity!r}")
        for name in self.enabled or ():
            try:
                DiagnosticKind.parse(name)
            except ValueError:
                warnings.append(f"unknown check: {name!r}")
        return warnings

    # ── derived views ──────────────────────────────────────────────

    def enabled_kinds(self) -> Optional[Set[DiagnosticKind]]:
        kinds: Optional[Set[DiagnosticKind]] = None
        if self.enabled is not None:
            kinds = {DiagnosticKind.parse(n) for n in self.enabled}
        if not self.report_precedence_hazards:
            kinds = set(DiagnosticKind) if kinds is None else kinds
            kinds.discard(DiagnosticKind.PRECEDENCE_HAZARD)
        return kinds

    def severity_floor(self) -> Severity:
        return Severity(self.min_severity)

    def make_suppressions(self) -> SuppressionManager:
        manager = SuppressionManager()
        for tag in self.suppressed:
            manager.add_global_suppression(tag)
        return manager

    # ── loading ────────────────────────────────────────────────────

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalyzerConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"unknown configuration key(s): {', '.join(unknown)}")
        config = cls(**data)
        problems = config.validate()
        if problems:
            raise ConfigError("; ".join(problems))
        return config

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "AnalyzerConfig":
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise ConfigError(f"cannot read {path}: {exc}", cause=exc) from exc
        except json.JSONDecodeError as exc:
            raise ConfigError(f"{path}: invalid JSON: {exc.msg}", cause=exc) from exc
        if not isinstance(data, dict):
            raise ConfigError(f"{path}: top level must be an object")
        logger.debug("loaded configuration from %s", path)
        return cls.from_dict(data)
