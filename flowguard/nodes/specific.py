# flowguard/nodes/specific.py
"""
Per-node-type checks.

Handlers are registered against normalized short type keys
(`httprequest`, `webhook`, ...). Supporting a new node family means
registering another handler, not editing the dispatcher.
"""

import re
from typing import Any, Callable, Dict, List

from flowguard.utils.node_types import short_type
from flowguard.validation.report import Category, ValidationIssue, error, warning

NodeValidator = Callable[[Dict[str, Any], Dict[str, Any]], List[ValidationIssue]]

NODE_VALIDATORS: Dict[str, NodeValidator] = {}

_CRON_RE = re.compile(r"^([\d\*/,-]+)\s+([\d\*/,-]+)\s+([\d\*/,-]+)\s+([\d\*/,-]+)\s+([\d\*/,-]+)(\s+([\d\*/,-]+))?$")
_SQL_DELETE_RE = re.compile(r"\bdelete\s+from\b", re.I)
_SQL_UPDATE_RE = re.compile(r"\bupdate\s+\S+\s+set\b", re.I)
_SQL_WHERE_RE = re.compile(r"\bwhere\b", re.I)
_RETURN_RE = re.compile(r"\breturn\b")


def register_node_validator(*keys: str):
    """Register a handler under one or more short type keys."""
    def deco(fn: NodeValidator) -> NodeValidator:
        for key in keys:
            NODE_VALIDATORS[key.lower()] = fn
        return fn
    return deco


def validate_node_specific(node: Dict[str, Any]) -> List[ValidationIssue]:
    handler = NODE_VALIDATORS.get(short_type(node.get("type")))
    if handler is None:
        return []
    params = node.get("parameters")
    if not isinstance(params, dict):
        params = {}
    return handler(node, params)


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def _is_expression(value: Any) -> bool:
    return isinstance(value, str) and ("{{" in value or value.startswith("="))


@register_node_validator("httprequest")
def _http_request(node, params):
    issues = []
    url = params.get("url")
    if _blank(url):
        issues.append(error(
            "http_missing_url", Category.SCHEMA, "URL is required for HTTP requests",
            node, property="url", fix="Provide the full URL including protocol (https://...)",
        ))
    elif isinstance(url, str) and not _is_expression(url):
        if not url.strip().lower().startswith(("http://", "https://")):
            issues.append(error(
                "http_invalid_url", Category.SCHEMA, "URL should start with http:// or https://",
                node, property="url", fix="Use https:// for secure connections",
            ))

    method = str(params.get("method") or "GET").upper()
    if method in ("POST", "PUT", "PATCH") and not params.get("sendBody"):
        issues.append(warning(
            "http_missing_body", Category.SCHEMA, f"{method} requests typically include a body",
            node, property="sendBody", fix="Set sendBody: true and configure the body content",
        ))
    return issues


@register_node_validator("webhook")
def _webhook(node, params):
    path = params.get("path")
    if _blank(path):
        return [error(
            "webhook_missing_path", Category.SCHEMA, "Webhook path is required",
            node, property="path", fix="Set a unique path, e.g. 'my-webhook'",
        )]
    if isinstance(path, str) and path.startswith("/"):
        return [warning(
            "webhook_path_format", Category.SCHEMA, "Webhook path should not start with /",
            node, property="path", fix=f"Use '{path.lstrip('/')}'",
        )]
    return []


@register_node_validator("code")
def _code(node, params):
    language = params.get("language") or "javaScript"
    field = "pythonCode" if language == "python" else "jsCode"
    code = params.get(field)
    if _blank(code):
        return [error(
            "code_empty", Category.SCHEMA, "Code cannot be empty",
            node, property=field,
            fix='Add your code logic. Start with: return [{json: {result: "success"}}]',
        )]
    if isinstance(code, str) and not _RETURN_RE.search(code):
        return [warning(
            "code_missing_return", Category.SCHEMA, "Code must return data for the next node",
            node, property=field, fix="Return an array of items, e.g. return [{json: {...}}]",
        )]
    return []


@register_node_validator("scheduletrigger", "cron")
def _schedule(node, params):
    issues = []
    for expr in _cron_expressions(params):
        if _is_expression(expr):
            continue
        if not _CRON_RE.match(expr.strip()):
            issues.append(error(
                "cron_invalid_expression", Category.SCHEMA,
                f"Invalid cron expression: '{expr}'",
                node, property="cronExpression",
                fix="Use five or six space-separated fields, e.g. '0 9 * * 1-5'",
            ))
    return issues


def _cron_expressions(params: Dict[str, Any]) -> List[str]:
    found = []
    for key in ("cronExpression", "cron"):
        if isinstance(params.get(key), str):
            found.append(params[key])
    # scheduleTrigger v1.1+: rule.interval[].expression when field == "cronExpression"
    rule = params.get("rule")
    intervals = rule.get("interval") if isinstance(rule, dict) else None
    for item in intervals if isinstance(intervals, list) else []:
        if isinstance(item, dict) and item.get("field") == "cronExpression" and isinstance(item.get("expression"), str):
            found.append(item["expression"])
    return found


@register_node_validator("emailsend")
def _email_send(node, params):
    issues = []
    recipient = params.get("toEmail", params.get("to"))
    if _blank(recipient):
        issues.append(error(
            "email_missing_recipient", Category.SCHEMA, "Recipient email address is required",
            node, property="toEmail",
        ))
    if _blank(params.get("subject")):
        issues.append(warning(
            "email_missing_subject", Category.SCHEMA, "Email has no subject",
            node, property="subject",
        ))
    return issues


@register_node_validator("postgres", "mysql", "microsoftsql")
def _sql(node, params):
    issues = []
    operation = params.get("operation") or "executeQuery"
    query = params.get("query")
    if operation == "executeQuery" and _blank(query):
        return [error(
            "sql_missing_query", Category.SCHEMA, "SQL query is required", node, property="query",
        )]
    if not isinstance(query, str):
        return issues

    if "{{" in query:
        issues.append(warning(
            "sql_expression_in_query", Category.SCHEMA,
            "Query contains template expressions that might be vulnerable to SQL injection",
            node, property="query", fix="Use query parameters ($1, $2, ...) instead of string interpolation",
        ))
    if _SQL_DELETE_RE.search(query) and not _SQL_WHERE_RE.search(query):
        issues.append(warning(
            "sql_unbounded_write", Category.SCHEMA,
            "DELETE query without WHERE clause will delete all records", node, property="query",
        ))
    if _SQL_UPDATE_RE.search(query) and not _SQL_WHERE_RE.search(query):
        issues.append(warning(
            "sql_unbounded_write", Category.SCHEMA,
            "UPDATE query without WHERE clause will update all records", node, property="query",
        ))
    return issues


@register_node_validator("slack")
def _slack(node, params):
    resource = params.get("resource") or "message"
    operation = params.get("operation") or "post"
    if resource != "message" or operation not in ("post", "update", "delete"):
        return []
    channel = params.get("channel", params.get("channelId"))
    if isinstance(channel, dict):
        channel = channel.get("value")
    if _blank(channel):
        return [error(
            "slack_missing_channel", Category.SCHEMA, f"Channel is required to {operation} a message",
            node, property="channel",
        )]
    return []
