# flowguard/validation/report.py
"""Validation issue and report containers (wire shape is camelCase)."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class Category(str, Enum):
    STRUCTURAL = "structural"
    SCHEMA = "schema"
    PATTERN = "pattern"
    EXPRESSION = "expression"
    VERSION = "version"
    BATCH = "batch"


@dataclass
class ValidationIssue:
    severity: Severity
    code: str
    category: Category
    message: str
    node_id: Optional[str] = None
    node_name: Optional[str] = None
    property_path: Optional[str] = None
    fix: Optional[str] = None
    details: Optional[Dict[str, Any]] = None

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "severity": self.severity.value,
            "code": self.code,
            "category": self.category.value,
            "message": self.message,
        }
        for key, value in (
            ("nodeId", self.node_id),
            ("nodeName", self.node_name),
            ("property", self.property_path),
            ("fix", self.fix),
            ("details", self.details),
        ):
            if value is not None:
                out[key] = value
        return out


@dataclass
class ValidationReport:
    profile: str = "runtime"
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    statistics: Dict[str, Any] = field(default_factory=dict)

    @property
    def valid(self) -> bool:
        return not self.errors

    def add(self, issue: ValidationIssue) -> None:
        bucket = self.errors if issue.is_error else self.warnings
        bucket.append(issue)

    def extend(self, issues) -> None:
        for issue in issues:
            self.add(issue)

    def suggest(self, text: str) -> None:
        if text not in self.suggestions:
            self.suggestions.append(text)

    def issues_for(self, code: str) -> List[ValidationIssue]:
        return [i for i in self.errors + self.warnings if i.code == code]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "profile": self.profile,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "suggestions": list(self.suggestions),
            "statistics": dict(self.statistics),
        }


def error(code: str, category: Category, message: str, node: Optional[dict] = None, **extra) -> ValidationIssue:
    return _issue(Severity.ERROR, code, category, message, node, extra)


def warning(code: str, category: Category, message: str, node: Optional[dict] = None, **extra) -> ValidationIssue:
    return _issue(Severity.WARNING, code, category, message, node, extra)


def _issue(severity, code, category, message, node, extra) -> ValidationIssue:
    node = node or {}
    return ValidationIssue(
        severity=severity,
        code=code,
        category=category,
        message=message,
        node_id=extra.pop("node_id", node.get("id")),
        node_name=extra.pop("node_name", node.get("name")),
        property_path=extra.pop("property", None),
        **extra,
    )
