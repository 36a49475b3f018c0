# flowguard/validation/workflow.py
"""
WorkflowValidator: runs every check over a workflow and returns a report
scoped to a profile.
"""

from typing import Any, Dict, FrozenSet, List, Optional

from flowguard.config import Settings
from flowguard.errors import InputValidationError
from flowguard.expression.format import check_parameters
from flowguard.expression.validator import ExpressionContext, validate_node_expressions
from flowguard.nodes.properties import check_properties
from flowguard.nodes.registry import is_versioned, latest_version
from flowguard.nodes.settings import check_node_settings
from flowguard.nodes.similarity import NodeSimilarityService
from flowguard.nodes.specific import validate_node_specific
from flowguard.structural.checker import (
    CONNECTION_EXAMPLE, check_connections, check_error_outputs, check_topology,
    check_workflow_patterns, check_workflow_shape,
)
from flowguard.structural.metrics import compute_statistics, count_expressions
from flowguard.structural.patterns import StructuralPatternValidator
from flowguard.utils.graph import iter_connections, node_list
from flowguard.utils.logger import get_logger
from flowguard.utils.node_types import (
    LANGCHAIN_PACKAGE, is_annotation_type, is_legacy_prefixed, to_workflow_type,
)
from flowguard.validation.profiles import CRITICAL_CODES, Profile
from flowguard.validation.report import Category, ValidationIssue, ValidationReport, error, warning

log = get_logger("validator")

CONNECTION_CODES = (
    "no_connections", "unknown_connection_source", "unknown_connection_target",
    "connection_uses_node_id", "malformed_connection",
)

LARGE_WORKFLOW_NODES = 20
EXPRESSION_HEAVY = 5


class WorkflowValidator:
    """
    Args:
        registry: object with `lookup(node_type) -> dict | None`; when None the
            node-type existence and schema checks are skipped
        similarity: suggestion service for unknown types
        patterns: structural pattern validator (a cache-less one by default)
    """

    def __init__(
        self,
        registry=None,
        similarity: Optional[NodeSimilarityService] = None,
        patterns: Optional[StructuralPatternValidator] = None,
        settings: Optional[Settings] = None,
        critical_codes: FrozenSet[str] = CRITICAL_CODES,
    ):
        self.registry = registry
        self.settings = settings or Settings()
        self.patterns = patterns or StructuralPatternValidator()
        if similarity is None:
            known = registry.list_types() if hasattr(registry, "list_types") else ()
            similarity = NodeSimilarityService(known)
        self.similarity = similarity
        self.critical_codes = frozenset(critical_codes)

    # ---------- Public API ----------

    def validate(
        self,
        workflow: Dict[str, Any],
        profile: Optional[str] = None,
        validate_nodes: bool = True,
        validate_connections: bool = True,
        validate_expressions: bool = True,
    ) -> ValidationReport:
        if not isinstance(workflow, dict):
            raise InputValidationError(f"Workflow must be an object, got {type(workflow).__name__}")
        prof = Profile(profile or self.settings.default_profile, self.critical_codes)

        report = ValidationReport(profile=prof.name)
        report.statistics = compute_statistics(workflow)
        issues: List[ValidationIssue] = []
        suggestions: List[str] = []

        shape_issues, can_continue = check_workflow_shape(workflow)
        issues.extend(shape_issues)

        if can_continue:
            for node in self._enabled_nodes(workflow):
                issues.extend(self._check_pattern(node))
                if validate_nodes:
                    issues.extend(self._check_node(node))
                    settings_issues, settings_tips = check_node_settings(node)
                    issues.extend(settings_issues)
                    suggestions.extend(settings_tips)

            if validate_connections:
                conn_issues, conn_stats = check_connections(workflow)
                issues.extend(conn_issues)
                report.statistics.update(conn_stats)
                issues.extend(check_topology(workflow))
                issues.extend(check_error_outputs(workflow))

            if validate_expressions:
                issues.extend(self._check_expressions(workflow, report.statistics))

            issues.extend(check_workflow_patterns(workflow))

        for issue in issues:
            if prof.reports(issue.code):
                report.add(issue)

        if prof.suggestions and can_continue:
            for tip in suggestions + self._suggestions(workflow, report):
                report.suggest(tip)

        log.debug(
            "validated workflow %r (%s): %d errors, %d warnings",
            workflow.get("name"), prof.name, len(report.errors), len(report.warnings),
        )
        return report

    # ---------- Nodes ----------

    @staticmethod
    def _enabled_nodes(workflow: Dict[str, Any]) -> List[dict]:
        return [
            n for n in node_list(workflow)
            if not n.get("disabled") and not is_annotation_type(n.get("type"))
        ]

    def _check_pattern(self, node: Dict[str, Any]) -> List[ValidationIssue]:
        node_type = node.get("type")
        if not isinstance(node_type, str):
            return []
        result = self.patterns.validate(node_type, node.get("parameters"))
        return [
            error(
                "pattern_violation", Category.PATTERN, e["message"], node,
                property=e["pattern"], fix=e["fix"],
                details={"pattern": e["pattern"], "autofix": result.get("autofix")},
            )
            for e in result["errors"]
        ]

    def _check_node(self, node: Dict[str, Any]) -> List[ValidationIssue]:
        node_type = node.get("type")
        if not isinstance(node_type, str) or not node_type.strip():
            return [error("invalid_node_type", Category.SCHEMA, "Node type is missing", node, property="type")]

        # rejected before any registry lookup so a short form never resolves by accident
        if is_legacy_prefixed(node_type):
            correct = to_workflow_type(node_type)
            return [error(
                "invalid_node_type", Category.SCHEMA,
                f'Invalid node type: "{node_type}". Use "{correct}" instead. '
                "Node types in workflows must use the full package name.",
                node, property="type", fix=f'Use "{correct}"',
            )]
        if "." not in node_type:
            hint = self._did_you_mean(node_type)
            return [error(
                "invalid_node_type", Category.SCHEMA,
                f'Invalid node type: "{node_type}".{hint} Node types must include the package prefix '
                '(e.g., "n8n-nodes-base.webhook", not "webhook").',
                node, property="type", fix=self.similarity.best(node_type),
            )]

        issues: List[ValidationIssue] = []
        issues.extend(validate_node_specific(node))
        if self.registry is None:
            return issues

        info = self.registry.lookup(node_type)
        if info is None:
            hint = self._did_you_mean(node_type)
            issues.append(error(
                "unknown_node_type", Category.SCHEMA,
                f'Unknown node type: "{node_type}".{hint} Node types must include the package prefix '
                '(e.g., "n8n-nodes-base.webhook", not "webhook" or "nodes-base.webhook").',
                node, property="type", fix=self.similarity.best(node_type),
                details={"suggestions": self.similarity.suggest(node_type)},
            ))
            return issues

        issues.extend(self._check_version(node, info))
        issues.extend(check_properties(node, info.get("properties") or []))
        return issues

    def _did_you_mean(self, node_type: str) -> str:
        found = self.similarity.suggest(node_type)
        if not found:
            return ""
        return " Did you mean: " + ", ".join(f'"{s["nodeType"]}"' for s in found) + "?"

    @staticmethod
    def _check_version(node: Dict[str, Any], info: Dict[str, Any]) -> List[ValidationIssue]:
        latest = latest_version(info)
        tv = node.get("typeVersion")
        if tv is None:
            if is_versioned(info):
                return [error(
                    "missing_type_version", Category.VERSION,
                    f"Missing required property 'typeVersion'. Add typeVersion: {latest or 1}",
                    node, property="typeVersion", details={"suggestedVersion": latest or 1},
                )]
            return []
        if isinstance(tv, bool) or not isinstance(tv, (int, float)) or tv <= 0:
            return [error(
                "invalid_type_version", Category.VERSION,
                f"Invalid typeVersion: {tv}. Must be a positive number",
                node, property="typeVersion", details={"suggestedVersion": latest or 1},
            )]
        if latest is None:
            return []
        if tv > latest:
            return [error(
                "type_version_exceeds_max", Category.VERSION,
                f"typeVersion {tv} exceeds maximum supported version {latest}",
                node, property="typeVersion", details={"suggestedVersion": latest},
            )]
        if tv < latest and is_versioned(info):
            return [warning(
                "outdated_type_version", Category.VERSION,
                f"Outdated typeVersion: {tv}. Latest is {latest}",
                node, property="typeVersion", details={"suggestedVersion": latest},
            )]
        return []

    # ---------- Expressions ----------

    def _check_expressions(self, workflow: Dict[str, Any], stats: Dict[str, Any]) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        names = [n["name"] for n in node_list(workflow) if isinstance(n.get("name"), str)]
        with_input = {
            e.get("node") for _src, _kind, _idx, e in iter_connections(workflow, kinds=("main",))
            if isinstance(e.get("node"), str)
        }

        for node in self._enabled_nodes(workflow):
            params = node.get("parameters")
            if not params:
                continue
            name = node.get("name")
            context = ExpressionContext(
                available_nodes=[n for n in names if n != name],
                current_node_name=name,
                has_input_data=name in with_input,
            )
            result = validate_node_expressions(params, context)
            stats["expressionsValidated"] = stats.get("expressionsValidated", 0) + result.expressions_checked
            for msg in result.errors:
                issues.append(error("expression_error", Category.EXPRESSION, f"Expression error: {msg}", node))
            for msg in result.warnings:
                issues.append(warning("expression_warning", Category.EXPRESSION, f"Expression warning: {msg}", node))

            # langchain nodes follow their own expression rules
            if str(node.get("type") or "").startswith(LANGCHAIN_PACKAGE):
                continue
            for fmt in check_parameters(params):
                issues.append(warning(
                    "expression_format", Category.EXPRESSION,
                    f"Expression format issue in '{fmt['fieldPath']}': {fmt['explanation']}",
                    node, property=fmt["fieldPath"],
                    fix=f"Use {fmt['correctedValue']!r}",
                    details={
                        "fieldPath": fmt["fieldPath"],
                        "currentValue": fmt["currentValue"],
                        "correctedValue": fmt["correctedValue"],
                    },
                ))
        return issues

    # ---------- Suggestions ----------

    @staticmethod
    def _suggestions(workflow: Dict[str, Any], report: ValidationReport) -> List[str]:
        tips: List[str] = []
        nodes = node_list(workflow)
        if report.statistics.get("triggerNodes", 0) == 0:
            tips.append("Add a trigger node (e.g., Webhook, Schedule Trigger) to automate workflow execution")

        if any(e.code in CONNECTION_CODES for e in report.errors):
            tips.append(f"Example connection structure: {CONNECTION_EXAMPLE}")
            tips.append(
                "Remember: Use node NAMES (not IDs) in connections. "
                "The name is what you see in the UI, not the node type."
            )

        has_error_routing = any(n.get("onError") == "continueErrorOutput" for n in nodes) or any(
            True for _ in iter_connections(workflow, kinds=("error",))
        )
        if not has_error_routing:
            tips.append("Add error handling using the error output of nodes or an Error Trigger node")

        if any(n.get("continueOnFail") is True and not n.get("disabled") for n in nodes):
            tips.append(
                "Replace \"continueOnFail: true\" with \"onError: 'continueRegularOutput'\" "
                "for better UI compatibility and control."
            )

        if len(nodes) > LARGE_WORKFLOW_NODES:
            tips.append("Consider breaking this workflow into smaller sub-workflows for better maintainability")

        if any(count_expressions(n.get("parameters")) > EXPRESSION_HEAVY for n in nodes):
            tips.append("Consider using a Code node for complex data transformations instead of multiple expressions")

        if len(nodes) == 1 and not workflow.get("connections"):
            tips.append(
                "A minimal workflow needs: 1) A trigger node (e.g., Manual Trigger), "
                "2) An action node (e.g., Set, HTTP Request), 3) A connection between them"
            )
        return tips


def validate_workflow(workflow: Dict[str, Any], registry=None, profile: Optional[str] = None, **options) -> ValidationReport:
    return WorkflowValidator(registry=registry).validate(workflow, profile=profile, **options)
