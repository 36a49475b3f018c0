# flowguard/nodes/settings.py
"""Node-level settings: onError, retries, flags that live beside `parameters`."""

from typing import Any, Dict, List, Tuple

from flowguard.validation.report import Category, ValidationIssue, error, warning

ON_ERROR_VALUES = ("continueRegularOutput", "continueErrorOutput", "stopWorkflow")

NODE_LEVEL_PROPS = (
    "onError", "continueOnFail", "retryOnFail", "maxTries", "waitBetweenTries",
    "alwaysOutputData", "executeOnce", "disabled", "notes", "notesInFlow", "credentials",
)

BOOLEAN_FLAGS = ("retryOnFail", "alwaysOutputData", "executeOnce", "disabled", "notesInFlow")

# node types that talk to external services
ERROR_PRONE_TYPES = (
    "httprequest", "webhook", "emailsend", "slack", "discord", "telegram",
    "postgres", "mysql", "mongodb", "redis", "github", "gitlab", "jira",
    "salesforce", "hubspot", "airtable", "googlesheets", "googledrive",
    "dropbox", "s3", "ftp", "ssh", "mqtt", "kafka", "rabbitmq", "graphql",
    "openai", "anthropic",
)

MAX_TRIES_WARN = 10
WAIT_WARN_MS = 300000


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _has_error_handling(node: Dict[str, Any]) -> bool:
    return bool(node.get("onError") or node.get("continueOnFail") or node.get("retryOnFail"))


def check_node_settings(node: Dict[str, Any]) -> Tuple[List[ValidationIssue], List[str]]:
    """
    Returns:
        (issues, suggestions) for one node
    """
    issues: List[ValidationIssue] = []
    suggestions: List[str] = []
    name = node.get("name")
    ntype = str(node.get("type") or "").lower()

    params = node.get("parameters")
    if isinstance(params, dict):
        misplaced = [p for p in NODE_LEVEL_PROPS if p in params]
        if misplaced:
            issues.append(error(
                "misplaced_node_setting", Category.SCHEMA,
                f"Node-level properties {', '.join(misplaced)} are in the wrong location. "
                "They must be at the node level, not inside parameters.",
                node,
                fix="Move these properties from node.parameters to the node level",
                details={"properties": misplaced},
            ))

    on_error = node.get("onError")
    if on_error is not None and on_error not in ON_ERROR_VALUES:
        issues.append(error(
            "invalid_on_error", Category.SCHEMA,
            f'Invalid onError value: "{on_error}". Must be one of: {", ".join(ON_ERROR_VALUES)}',
            node, property="onError",
        ))

    cof = node.get("continueOnFail")
    if cof is not None:
        if not isinstance(cof, bool):
            issues.append(error(
                "invalid_setting_type", Category.SCHEMA,
                "continueOnFail must be a boolean value", node, property="continueOnFail",
            ))
        elif cof:
            issues.append(warning(
                "deprecated_continue_on_fail", Category.SCHEMA,
                'Using deprecated "continueOnFail: true". Use "onError: \'continueRegularOutput\'" '
                "instead for better control and UI compatibility.",
                node, property="continueOnFail",
            ))
        if on_error is not None:
            issues.append(error(
                "conflicting_error_handling", Category.SCHEMA,
                'Cannot use both "continueOnFail" and "onError" properties. '
                'Use only "onError" for modern workflows.',
                node,
            ))

    for flag in BOOLEAN_FLAGS:
        if flag in node and not isinstance(node[flag], bool):
            issues.append(error(
                "invalid_setting_type", Category.SCHEMA,
                f"{flag} must be a boolean value", node, property=flag,
            ))
    if "notes" in node and not isinstance(node["notes"], str):
        issues.append(error(
            "invalid_setting_type", Category.SCHEMA, "notes must be a string value", node, property="notes",
        ))

    if node.get("retryOnFail") is True:
        issues.extend(_check_retry(node))

    if node.get("executeOnce") is True:
        issues.append(warning(
            "execute_once_notice", Category.SCHEMA,
            "executeOnce is enabled. This node will execute only once regardless of input items.",
            node, property="executeOnce",
        ))

    if any(t in ntype for t in ERROR_PRONE_TYPES) and not _has_error_handling(node):
        issues.append(warning(
            "missing_error_handling", Category.SCHEMA, _error_handling_hint(ntype), node,
        ))

    if (cof or node.get("retryOnFail")) and not node.get("alwaysOutputData"):
        if "httprequest" in ntype or "webhook" in ntype:
            suggestions.append(
                f'Consider enabling alwaysOutputData on "{name}" to capture error responses for debugging'
            )
    return issues, suggestions


def _check_retry(node: Dict[str, Any]) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []
    max_tries = node.get("maxTries")
    if max_tries is None:
        issues.append(warning(
            "retry_config_warning", Category.SCHEMA,
            "retryOnFail is enabled but maxTries is not specified. Default is 3 attempts.",
            node, property="maxTries",
        ))
    elif not _is_number(max_tries) or max_tries < 1:
        issues.append(error(
            "invalid_retry_config", Category.SCHEMA,
            "maxTries must be a positive number when retryOnFail is enabled",
            node, property="maxTries",
        ))
    elif max_tries > MAX_TRIES_WARN:
        issues.append(warning(
            "retry_config_warning", Category.SCHEMA,
            f"maxTries is set to {max_tries}. Consider if this many retries is necessary.",
            node, property="maxTries",
        ))

    wait = node.get("waitBetweenTries")
    if wait is not None:
        if not _is_number(wait) or wait < 0:
            issues.append(error(
                "invalid_retry_config", Category.SCHEMA,
                "waitBetweenTries must be a non-negative number (milliseconds)",
                node, property="waitBetweenTries",
            ))
        elif wait > WAIT_WARN_MS:
            issues.append(warning(
                "retry_config_warning", Category.SCHEMA,
                f"waitBetweenTries is set to {wait}ms ({wait / 1000:.1f}s). This seems excessive.",
                node, property="waitBetweenTries",
            ))
    return issues


def _error_handling_hint(ntype: str) -> str:
    if "httprequest" in ntype:
        return ("HTTP Request node without error handling. Consider adding "
                "\"onError: 'continueRegularOutput'\" for non-critical requests or "
                "\"retryOnFail: true\" for transient failures.")
    if "webhook" in ntype:
        return ("Webhook node without error handling. Consider adding "
                "\"onError: 'continueRegularOutput'\" to prevent workflow failures from blocking webhook responses.")
    if any(db in ntype for db in ("postgres", "mysql", "mongodb")):
        return ("Database operation without error handling. Consider adding \"retryOnFail: true\" for "
                "connection issues or \"onError: 'continueRegularOutput'\" for non-critical queries.")
    simple = ntype.rsplit(".", 1)[-1]
    return (f"{simple} node interacts with external services but has no error handling configured. "
            "Consider using \"onError\" property.")
