# flowguard/structural/checker.py
"""
Workflow-level structure checks: shape, connections, topology and error
output routing. Every check returns issues; nothing here raises on bad data.
"""

import json
from typing import Any, Dict, List, Tuple

from flowguard.structural.metrics import (
    LONG_CHAIN_THRESHOLD, agents_without_tools, find_unreachable_nodes, longest_chain, trigger_names,
)
from flowguard.structural.schema import WORKFLOW_SCHEMA, schema_errors
from flowguard.utils.graph import (
    build_adjacency, detect_cycle, find_orphans, iter_connections, node_list, nodes_by_id, nodes_by_name,
)
from flowguard.utils.node_types import is_annotation_type, is_webhook_type, short_type
from flowguard.validation.report import Category, ValidationIssue, error, warning

ERROR_HANDLER_KEYWORDS = ("error", "fail", "catch", "exception")

# nodes whose main[1] is a regular branch, not an error output
MULTI_OUTPUT_TYPES = ("if", "switch", "filter", "splitinbatches", "comparedatasets", "textclassifier")

CONNECTION_EXAMPLE = (
    'connections: { "Source Node Name": { "main": [[{ "node": "Target Node Name", "type": "main", "index": 0 }]] } }'
)


# ---------- Shape ----------

def _is_key(value: Any) -> bool:
    return value is None or isinstance(value, (str, int, float))


def check_workflow_shape(workflow: Dict[str, Any]) -> Tuple[List[ValidationIssue], bool]:
    """
    Returns:
        (issues, can_continue) where can_continue is False when nodes or
        connections are too malformed for the remaining checks
    """
    issues: List[ValidationIssue] = []
    for msg in schema_errors(workflow, WORKFLOW_SCHEMA):
        issues.append(error("workflow_structure", Category.STRUCTURAL, f"Invalid workflow structure: {msg}"))

    # the schema pass has already reported these
    if not isinstance(workflow.get("nodes"), list) or not isinstance(workflow.get("connections"), dict):
        return issues, False
    # later passes key nodes by name and id
    if not all(_is_key(n.get("name")) and _is_key(n.get("id")) for n in node_list(workflow)):
        return issues, False

    executable = [n for n in node_list(workflow) if not is_annotation_type(n.get("type"))]
    if not executable:
        issues.append(error("empty_workflow", Category.STRUCTURAL, "Workflow has no nodes"))
        return issues, False

    has_connections = bool(workflow["connections"])
    if len(executable) == 1:
        if not is_webhook_type(executable[0].get("type")):
            issues.append(error(
                "single_node_workflow", Category.STRUCTURAL,
                "Single-node workflows are only valid for webhook endpoints. "
                "Add at least one more connected node to create a functional workflow.",
                executable[0],
            ))
    elif not has_connections and any(not n.get("disabled") for n in executable):
        issues.append(error(
            "no_connections", Category.STRUCTURAL,
            "Multi-node workflow has no connections. Nodes must be connected to create a workflow. "
            f"Use {CONNECTION_EXAMPLE}",
        ))

    seen_names, seen_ids = set(), set()
    for n in node_list(workflow):
        name, nid = n.get("name"), n.get("id")
        if isinstance(name, str):
            if name in seen_names:
                issues.append(error("duplicate_node_name", Category.STRUCTURAL, f'Duplicate node name: "{name}"', n))
            seen_names.add(name)
        if nid is not None:
            if nid in seen_ids:
                issues.append(error("duplicate_node_id", Category.STRUCTURAL, f'Duplicate node ID: "{nid}"', n))
            seen_ids.add(nid)

    if not trigger_names(workflow) and any(not n.get("disabled") for n in executable):
        issues.append(warning(
            "no_trigger", Category.STRUCTURAL,
            "Workflow has no trigger nodes. It can only be executed manually.",
        ))
    return issues, True


# ---------- Connections ----------

def check_connections(workflow: Dict[str, Any]) -> Tuple[List[ValidationIssue], Dict[str, int]]:
    """
    Every endpoint must name an existing node. Ids used in place of names are
    reported with the correct name.

    Returns:
        (issues, {"validConnections": int, "invalidConnections": int})
    """
    issues: List[ValidationIssue] = []
    stats = {"validConnections": 0, "invalidConnections": 0}
    by_name = nodes_by_name(workflow)
    by_id = nodes_by_id(workflow)
    conns = workflow.get("connections") or {}

    for src, outs in conns.items():
        if src not in by_name:
            node = by_id.get(src)
            if node is not None:
                issues.append(error(
                    "connection_uses_node_id", Category.STRUCTURAL,
                    f"Connection uses node ID '{src}' instead of node name '{node.get('name')}'. "
                    "In n8n, connections must use node names, not IDs.",
                    node, fix=f"Use \"{node.get('name')}\" as the connection key",
                ))
            else:
                issues.append(error(
                    "unknown_connection_source", Category.STRUCTURAL,
                    f'Connection from non-existent node: "{src}"',
                    node_name=src,
                ))
            stats["invalidConnections"] += 1
            continue
        if not isinstance(outs, dict):
            issues.append(error(
                "malformed_connection", Category.STRUCTURAL,
                f'Connections of "{src}" must be an object keyed by output type', by_name[src],
            ))
            stats["invalidConnections"] += 1
            continue
        for kind, ports in outs.items():
            if not isinstance(ports, list) or any(p is not None and not isinstance(p, list) for p in ports):
                issues.append(error(
                    "malformed_connection", Category.STRUCTURAL,
                    f'Connection outputs "{src}".{kind} must be a list of port lists', by_name[src],
                ))
                stats["invalidConnections"] += 1

    for src, kind, _idx, endpoint in iter_connections(workflow):
        if src not in by_name:
            continue
        target = endpoint.get("node")
        if not isinstance(target, str):
            issues.append(error(
                "malformed_connection", Category.STRUCTURAL,
                f'Connection from "{src}" has an endpoint without a node name', by_name[src],
            ))
            stats["invalidConnections"] += 1
            continue
        node = by_name.get(target)
        if node is None:
            node = by_id.get(target)
            if node is not None:
                issues.append(error(
                    "connection_uses_node_id", Category.STRUCTURAL,
                    f"Connection target uses node ID '{target}' instead of node name "
                    f"'{node.get('name')}' (from {src}). In n8n, connections must use node names, not IDs.",
                    node, fix=f"Use \"{node.get('name')}\" as the target node",
                ))
            else:
                issues.append(error(
                    "unknown_connection_target", Category.STRUCTURAL,
                    f'Connection to non-existent node: "{target}" from "{src}"',
                    by_name[src],
                ))
            stats["invalidConnections"] += 1
        elif node.get("disabled"):
            issues.append(warning(
                "connection_to_disabled", Category.STRUCTURAL,
                f'Connection to disabled node: "{target}" from "{src}"', node,
            ))
        else:
            stats["validConnections"] += 1
    return issues, stats


# ---------- Topology ----------

def check_topology(workflow: Dict[str, Any]) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []
    for n in find_orphans(workflow):
        issues.append(warning("orphan_node", Category.STRUCTURAL, "Node is not connected to any other nodes", n))

    cycle = detect_cycle(build_adjacency(workflow))
    if cycle:
        issues.append(error(
            "workflow_cycle", Category.STRUCTURAL,
            f"Workflow contains a cycle (infinite loop): {' -> '.join(cycle)}",
            details={"cycle": cycle},
        ))
    return issues


def check_workflow_patterns(workflow: Dict[str, Any]) -> List[ValidationIssue]:
    """Reachability, chain length, credentials and AI agent wiring."""
    issues: List[ValidationIssue] = []
    by_name = nodes_by_name(workflow)

    for name in find_unreachable_nodes(workflow):
        issues.append(warning(
            "unreachable_node", Category.STRUCTURAL,
            "Node is not reachable from any trigger and will never execute", by_name.get(name), node_name=name,
        ))

    chain = longest_chain(workflow)
    if len(chain) > LONG_CHAIN_THRESHOLD:
        issues.append(warning(
            "long_chain", Category.STRUCTURAL,
            f"Long linear chain detected ({len(chain)} nodes). Consider breaking into sub-workflows.",
            details={"chain": chain},
        ))

    for n in node_list(workflow):
        creds = n.get("credentials")
        if not isinstance(creds, dict):
            continue
        for cred_type, cred in creds.items():
            if not isinstance(cred, dict) or "id" not in cred:
                issues.append(warning(
                    "credentials_missing_id", Category.SCHEMA,
                    f"Missing credentials configuration for {cred_type}", n, property=f"credentials.{cred_type}",
                ))

    for n in agents_without_tools(workflow):
        issues.append(warning(
            "ai_agent_without_tools", Category.STRUCTURAL,
            "AI Agent has no tools connected. Consider adding tools to enhance agent capabilities.", n,
        ))
    return issues


# ---------- Error outputs ----------

def is_error_handler(node: Dict[str, Any]) -> bool:
    name = str(node.get("name") or "").lower()
    if any(k in name for k in ERROR_HANDLER_KEYWORDS):
        return True
    return short_type(node.get("type")) == "respondtowebhook"


def _endpoint_json(name: str) -> str:
    return json.dumps({"node": name, "type": "main", "index": 0})


def _layout(src: str, ports: List[List[str]], labels: List[str]) -> str:
    lines = [f'"{src}": {{', '  "main": [']
    for i, (names, label) in enumerate(zip(ports, labels)):
        lines.append(f"    [  // {label}")
        lines.extend(f"      {_endpoint_json(n)}{',' if j < len(names) - 1 else ''}" for j, n in enumerate(names))
        lines.append("    ]" + ("," if i < len(ports) - 1 else ""))
    lines.extend(["  ]", "}"])
    return "\n".join(lines)


def _port_targets(ports: list, index: int) -> List[str]:
    port = ports[index] if len(ports) > index and isinstance(ports[index], list) else []
    return [e["node"] for e in port if isinstance(e, dict) and isinstance(e.get("node"), str)]


def check_error_outputs(workflow: Dict[str, Any]) -> List[ValidationIssue]:
    """
    Success and error targets must sit on different ports: main[0] is the
    success output, main[1] the error output.
    """
    issues: List[ValidationIssue] = []
    by_name = nodes_by_name(workflow)
    conns = workflow.get("connections") or {}

    for node in node_list(workflow):
        name = node.get("name")
        outs = conns.get(name) if isinstance(conns, dict) and isinstance(name, str) else None
        main = outs.get("main") if isinstance(outs, dict) else None
        main = main if isinstance(main, list) else []
        port0, port1 = _port_targets(main, 0), _port_targets(main, 1)

        if len(port0) > 1:
            handlers = [t for t in port0 if t in by_name and is_error_handler(by_name[t])]
            regular = [t for t in port0 if t not in handlers]
            if handlers and regular:
                issues.append(error(
                    "error_output_misconfigured", Category.STRUCTURAL,
                    _misconfigured_message(name, port0, regular, handlers, node.get("onError")),
                    node,
                    fix="Move the error handler targets to main[1] and set onError: 'continueErrorOutput'",
                    details={"successTargets": regular, "errorTargets": handlers},
                ))
                continue

        if short_type(node.get("type")) in MULTI_OUTPUT_TYPES:
            continue
        on_error = node.get("onError")
        if on_error == "continueErrorOutput" and not port1:
            issues.append(error(
                "error_output_missing_connections", Category.STRUCTURAL,
                f"Node has onError: 'continueErrorOutput' but no error output connections in main[1]. "
                "Add error handler connections to main[1] or change onError to "
                "'continueRegularOutput' or 'stopWorkflow'.",
                node, property="onError",
            ))
        elif port1 and on_error != "continueErrorOutput":
            issues.append(warning(
                "error_output_missing_on_error", Category.STRUCTURAL,
                "Node has error output connections in main[1] but missing onError: 'continueErrorOutput'. "
                "Add this property so errors are routed to the error output.",
                node, property="onError",
            ))
    return issues


def _misconfigured_message(src: str, port0: List[str], regular: List[str], handlers: List[str], on_error: Any) -> str:
    parts = [
        f"Incorrect error output configuration. Nodes {', '.join(handlers)} appear to be error handlers "
        "but are in main[0] (success output) along with other nodes.",
        "",
        "INCORRECT (current):",
        _layout(src, [port0], ["main[0] has multiple nodes mixed together"]),
        "",
        "CORRECT (should be):",
        _layout(src, [regular, handlers], ["main[0] = success output", "main[1] = error output"]),
    ]
    if on_error != "continueErrorOutput":
        parts += ["", f"Also add: \"onError\": \"continueErrorOutput\" to the \"{src}\" node."]
    return "\n".join(parts)
