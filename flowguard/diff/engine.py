# flowguard/diff/engine.py
"""
Transactional diff application.

A request carries at most `max_operations` operations. Every operation is
shape-checked before anything runs; node operations then run before
connection operations, which run before metadata operations, so a
connection can reference a node added in the same request. The input
workflow is never mutated and the batch is all or nothing.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from flowguard.config import Settings
from flowguard.diff.operations import HANDLERS, NODE_OPERATIONS, DiffError, partition
from flowguard.errors import InputValidationError
from flowguard.structural.schema import DIFF_REQUEST_SCHEMA, schema_errors
from flowguard.utils.logger import get_logger
from flowguard.validation.report import ValidationReport

log = get_logger("diff")

VALIDATE_ONLY_MESSAGE = "Validation successful. Operations are valid but not applied."


@dataclass
class DiffResult:
    success: bool
    operations_applied: int = 0
    message: str = ""
    workflow: Optional[Dict[str, Any]] = None
    errors: List[DiffError] = field(default_factory=list)
    validation: Optional[ValidationReport] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "success": self.success,
            "operationsApplied": self.operations_applied,
            "message": self.message,
        }
        if self.workflow is not None:
            out["workflow"] = self.workflow
        if self.errors:
            out["errors"] = [e.to_dict() for e in self.errors]
        if self.validation is not None:
            out["validation"] = self.validation.to_dict()
        return out


def _failure(errors: List[DiffError], applied: int = 0) -> DiffResult:
    head = errors[0].message if errors else "Diff failed"
    suffix = f" (+{len(errors) - 1} more)" if len(errors) > 1 else ""
    return DiffResult(success=False, operations_applied=applied, message=head + suffix, errors=errors)


class WorkflowDiffEngine:
    """
    Args:
        settings: supplies the per-request operation cap
        validator: optional WorkflowValidator run on the edited workflow;
            its report is attached but never changes `success`
        profile: profile handed to the validator
    """

    def __init__(self, settings: Optional[Settings] = None, validator=None, profile: Optional[str] = None):
        self.settings = settings or Settings()
        self.validator = validator
        self.profile = profile

    # ---------- Public API ----------

    def apply_diff(self, workflow: Dict[str, Any], request: Dict[str, Any]) -> DiffResult:
        if not isinstance(workflow, dict):
            raise InputValidationError(f"Workflow must be an object, got {type(workflow).__name__}")
        if not isinstance(request, dict):
            raise InputValidationError(f"Diff request must be an object, got {type(request).__name__}")
        problems = schema_errors(request, DIFF_REQUEST_SCHEMA)
        if problems:
            raise InputValidationError("Invalid diff request: " + problems[0], problems)

        operations = request["operations"]
        cap = self.settings.max_operations
        if len(operations) > cap:
            log.warning("rejecting diff with %d operations (max %d)", len(operations), cap)
            return _failure([DiffError(
                -1,
                f"Too many operations. Maximum {cap} operations allowed per request "
                "to ensure transactional integrity.",
            )])

        ordered, errors = partition(operations)
        if errors:
            log.warning("rejecting diff: %d malformed operation(s)", len(errors))
            return _failure(errors)

        working = copy.deepcopy(workflow)
        if not isinstance(working.get("nodes"), list):
            working["nodes"] = []
        if not isinstance(working.get("connections"), dict):
            working["connections"] = {}

        applied = 0
        for idx, op in ordered:
            problem = HANDLERS[op["type"]](working, op)
            if problem:
                log.info("diff operation %d (%s) failed: %s", idx, op["type"], problem)
                return _failure([DiffError(idx, problem, details=op)], applied)
            applied += 1

        if request.get("validateOnly"):
            return DiffResult(success=True, operations_applied=applied, message=VALIDATE_ONLY_MESSAGE)

        node_ops = sum(1 for _, op in ordered if op["type"] in NODE_OPERATIONS)
        result = DiffResult(
            success=True,
            operations_applied=applied,
            message=f"Successfully applied {applied} operations ({node_ops} node ops, {applied - node_ops} other ops)",
            workflow=working,
        )
        if self.validator is not None:
            result.validation = self.validator.validate(working, profile=self.profile)
        log.debug("applied diff: %s", result.message)
        return result


def apply_diff(workflow: Dict[str, Any], request: Dict[str, Any], settings: Optional[Settings] = None,
               validator=None) -> DiffResult:
    return WorkflowDiffEngine(settings=settings, validator=validator).apply_diff(workflow, request)
