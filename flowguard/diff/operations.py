# flowguard/diff/operations.py
"""
Diff operations: classification, shape checks and the per-type handlers.

Each handler checks its preconditions against the working copy and returns
an error message without touching it, or applies the edit and returns None.
"""

import copy
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from flowguard.structural.schema import OPERATION_SCHEMAS, first_schema_error
from flowguard.utils.graph import node_list, resolve_node
from flowguard.utils.logger import get_logger
from flowguard.utils.node_types import is_legacy_prefixed, to_workflow_type
from flowguard.utils.paths import set_path, split_path

log = get_logger("diff")

NODE_OPERATIONS = ("addNode", "removeNode", "updateNode", "moveNode", "enableNode", "disableNode")
CONNECTION_OPERATIONS = ("addConnection", "removeConnection", "updateConnection")
METADATA_OPERATIONS = ("updateSettings", "updateName", "addTag", "removeTag")

BUCKETS = (NODE_OPERATIONS, CONNECTION_OPERATIONS, METADATA_OPERATIONS)

DEFAULT_POSITION = [0, 0]


@dataclass
class DiffError:
    operation: int
    message: str
    details: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out = {"operation": self.operation, "message": self.message}
        if self.details is not None:
            out["details"] = self.details
        return out


def classify(op_type: Any) -> Optional[int]:
    """Bucket index (0 node, 1 connection, 2 metadata) or None for unknown types."""
    for i, bucket in enumerate(BUCKETS):
        if op_type in bucket:
            return i
    return None


def partition(operations: List[dict]) -> Tuple[List[Tuple[int, dict]], List[DiffError]]:
    """
    Stable partition into node, connection and metadata operations, each
    paired with its position in the request.

    Returns:
        (ordered [(request_index, op)], errors for unknown or malformed ops)
    """
    buckets: List[List[Tuple[int, dict]]] = [[], [], []]
    errors: List[DiffError] = []
    for idx, op in enumerate(operations):
        op_type = op.get("type") if isinstance(op, dict) else None
        bucket = classify(op_type)
        if bucket is None:
            errors.append(DiffError(idx, f"Unknown operation type: {op_type}", details=op))
            continue
        problem = first_schema_error(op, OPERATION_SCHEMAS[op_type])
        if problem:
            errors.append(DiffError(idx, f"Invalid {op_type} operation: {problem}", details=op))
            continue
        buckets[bucket].append((idx, op))
    return [pair for bucket in buckets for pair in bucket], errors


# ---------- Helpers ----------

def _node_ref(workflow: dict, op: dict):
    return resolve_node(workflow, node_id=op.get("nodeId"), name=op.get("nodeName"))


def _endpoint_node(workflow: dict, ref: str):
    """Connection endpoints accept an id or a name."""
    return resolve_node(workflow, node_id=ref)


def _prune(outs: Dict[str, Any], kind: str) -> None:
    """Drop trailing empty ports and then the kind itself when nothing is left."""
    ports = outs.get(kind)
    if not isinstance(ports, list):
        return
    while ports and not ports[-1]:
        ports.pop()
    if not ports:
        outs.pop(kind, None)


def _malformed_connections(workflow: dict, sources=None) -> Optional[str]:
    """Error for the first source whose outputs are not {kind: [port lists]}."""
    conns = workflow["connections"]
    for src in (conns if sources is None else [s for s in sources if s in conns]):
        outs = conns[src]
        if outs is None:
            continue
        if isinstance(outs, dict) and all(
            ports is None or (isinstance(ports, list) and all(p is None or isinstance(p, list) for p in ports))
            for ports in outs.values()
        ):
            continue
        return f'Malformed connections for "{src}"'
    return None


def _has_edge(workflow: dict, source: str, target: str, kind: Optional[str] = None) -> bool:
    outs = workflow["connections"].get(source) or {}
    for k, ports in outs.items():
        if kind is not None and k != kind:
            continue
        for port in ports or []:
            if any(isinstance(e, dict) and e.get("node") == target for e in port or []):
                return True
    return False


def _find_edge(workflow: dict, source: str, target: str) -> Optional[Tuple[str, int, dict]]:
    outs = workflow["connections"].get(source) or {}
    for kind, ports in outs.items():
        for idx, port in enumerate(ports or []):
            for e in port or []:
                if isinstance(e, dict) and e.get("node") == target:
                    return kind, idx, e
    return None


def _remove_edges(workflow: dict, source: str, target: str, kind: str, port_index: Optional[int] = None) -> None:
    conns = workflow["connections"]
    outs = conns.get(source) or {}
    ports = outs.get(kind) or []
    for idx, port in enumerate(ports):
        if port_index is not None and idx != port_index:
            continue
        ports[idx] = [e for e in (port or []) if not (isinstance(e, dict) and e.get("node") == target)]
    _prune(outs, kind)
    if source in conns and not conns[source]:
        del conns[source]


def _add_edge(workflow: dict, source: str, target: str, kind: str, port_index: int,
              target_input: str, target_index: int) -> None:
    conns = workflow["connections"]
    outs = conns.get(source)
    if not isinstance(outs, dict):
        outs = conns[source] = {}
    ports = outs.get(kind)
    if not isinstance(ports, list):
        ports = outs[kind] = []
    while len(ports) <= port_index:
        ports.append([])
    if ports[port_index] is None:
        ports[port_index] = []
    ports[port_index].append({"node": target, "type": target_input, "index": target_index})


def _rename_in_connections(workflow: dict, old: str, new: str) -> None:
    conns = workflow["connections"]
    if old in conns:
        conns[new] = conns.pop(old)
    for outs in conns.values():
        for ports in (outs or {}).values():
            for port in ports or []:
                for e in port or []:
                    if isinstance(e, dict) and e.get("node") == old:
                        e["node"] = new


# ---------- Node operations ----------

def add_node(workflow: dict, op: dict) -> Optional[str]:
    spec = op["node"]
    name, node_type = spec["name"], spec["type"]
    nodes = node_list(workflow)
    if any(n.get("name") == name for n in nodes):
        return f'Node with name "{name}" already exists'
    if spec.get("id") is not None and any(n.get("id") == spec["id"] for n in nodes):
        return f'Node with id "{spec["id"]}" already exists'
    if is_legacy_prefixed(node_type):
        return f'Invalid node type "{node_type}". Use "{to_workflow_type(node_type)}" instead'
    if "." not in node_type:
        return f'Invalid node type "{node_type}". Must include package prefix (e.g., "n8n-nodes-base.webhook")'

    node = dict(spec)
    node["id"] = spec.get("id") or str(uuid.uuid4())
    node.setdefault("typeVersion", 1)
    node.setdefault("position", list(DEFAULT_POSITION))
    node.setdefault("parameters", {})
    workflow["nodes"].append(node)
    return None


def remove_node(workflow: dict, op: dict) -> Optional[str]:
    node, problem = _node_ref(workflow, op)
    if problem:
        return problem
    problem = _malformed_connections(workflow)
    if problem:
        return problem
    workflow["nodes"] = [n for n in workflow["nodes"] if n is not node]
    name = node.get("name")
    # connections are keyed by name
    if not isinstance(name, str):
        return None
    conns = workflow["connections"]
    incoming = [src for src in conns if _has_edge(workflow, src, name)]
    if name in conns or incoming:
        log.warning('removing node "%s" drops its connections', name)
    conns.pop(name, None)
    for src in incoming:
        for kind in list((conns.get(src) or {}).keys()):
            _remove_edges(workflow, src, name, kind)
    return None


def update_node(workflow: dict, op: dict) -> Optional[str]:
    node, problem = _node_ref(workflow, op)
    if problem:
        return problem
    changes = op["changes"]
    old_name = node.get("name")

    new_name = changes.get("name", old_name)
    if new_name != old_name:
        if not isinstance(new_name, str) or not new_name:
            return "Node name must be a non-empty string"
        if any(n is not node and n.get("name") == new_name for n in node_list(workflow)):
            return f'Node with name "{new_name}" already exists'
        problem = _malformed_connections(workflow)
        if problem:
            return problem
    new_id = changes.get("id", node.get("id"))
    if new_id != node.get("id") and any(n is not node and n.get("id") == new_id for n in node_list(workflow)):
        return f'Node with id "{new_id}" already exists'

    scratch = copy.deepcopy(node)
    for path, value in changes.items():
        if not split_path(path):
            return "Change path must not be empty"
        try:
            set_path(scratch, path, value)
        except ValueError as e:
            return f"Failed to apply change '{path}': {e}"
    node.clear()
    node.update(scratch)

    if new_name != old_name and isinstance(old_name, str):
        _rename_in_connections(workflow, old_name, new_name)
    return None


def move_node(workflow: dict, op: dict) -> Optional[str]:
    node, problem = _node_ref(workflow, op)
    if problem:
        return problem
    node["position"] = list(op["position"])
    return None


def enable_node(workflow: dict, op: dict) -> Optional[str]:
    node, problem = _node_ref(workflow, op)
    if problem:
        return problem
    node["disabled"] = False
    return None


def disable_node(workflow: dict, op: dict) -> Optional[str]:
    node, problem = _node_ref(workflow, op)
    if problem:
        return problem
    node["disabled"] = True
    return None


# ---------- Connection operations ----------

def _endpoints(workflow: dict, op: dict):
    source, problem = _endpoint_node(workflow, op["source"])
    if problem:
        return None, None, f"Source node not found: {op['source']}" if "not found" in problem else problem
    target, problem = _endpoint_node(workflow, op["target"])
    if problem:
        return None, None, f"Target node not found: {op['target']}" if "not found" in problem else problem
    for ref, node in ((op["source"], source), (op["target"], target)):
        if not isinstance(node.get("name"), str):
            return None, None, f'Node "{ref}" has no valid name to connect by'
    return source["name"], target["name"], None


def add_connection(workflow: dict, op: dict) -> Optional[str]:
    source, target, problem = _endpoints(workflow, op)
    if problem:
        return problem
    problem = _malformed_connections(workflow, [source])
    if problem:
        return problem
    kind = op.get("sourceOutput", "main")
    if _has_edge(workflow, source, target, kind):
        return f'Connection already exists from "{source}" to "{target}"'
    _add_edge(
        workflow, source, target, kind,
        op.get("sourceIndex", 0), op.get("targetInput", "main"), op.get("targetIndex", 0),
    )
    return None


def remove_connection(workflow: dict, op: dict) -> Optional[str]:
    source, target, problem = _endpoints(workflow, op)
    if problem:
        return problem
    problem = _malformed_connections(workflow, [source])
    if problem:
        return problem
    kind = op.get("sourceOutput", "main")
    outs = workflow["connections"].get(source) or {}
    if not outs.get(kind):
        return f'No connections found from "{source}"'
    if not _has_edge(workflow, source, target, kind):
        return f'No connection exists from "{source}" to "{target}"'
    _remove_edges(workflow, source, target, kind, op.get("sourceIndex"))
    return None


def update_connection(workflow: dict, op: dict) -> Optional[str]:
    """Move an existing edge: remove it, then add it with the changed fields."""
    source, target, problem = _endpoints(workflow, op)
    if problem:
        return problem
    problem = _malformed_connections(workflow, [source])
    if problem:
        return problem
    if not workflow["connections"].get(source):
        return f'No connections found from "{source}"'
    found = _find_edge(workflow, source, target)
    if found is None:
        return f'No connection exists from "{source}" to "{target}"'
    kind, port_index, endpoint = found
    changes = op.get("changes") or {}
    _remove_edges(workflow, source, target, kind, port_index)
    _add_edge(
        workflow, source, target,
        changes.get("sourceOutput", kind),
        changes.get("sourceIndex", port_index),
        changes.get("targetInput", endpoint.get("type", "main")),
        changes.get("targetIndex", endpoint.get("index", 0)),
    )
    return None


# ---------- Metadata operations ----------

def update_settings(workflow: dict, op: dict) -> Optional[str]:
    settings = workflow.get("settings")
    if not isinstance(settings, dict):
        settings = workflow["settings"] = {}
    settings.update(op["settings"])
    return None


def update_name(workflow: dict, op: dict) -> Optional[str]:
    workflow["name"] = op["name"]
    return None


def _tag_name(tag: Any) -> Any:
    return tag.get("name") if isinstance(tag, dict) else tag


def add_tag(workflow: dict, op: dict) -> Optional[str]:
    tags = workflow.get("tags")
    if not isinstance(tags, list):
        tags = workflow["tags"] = []
    if op["tag"] not in [_tag_name(t) for t in tags]:
        tags.append(op["tag"])
    return None


def remove_tag(workflow: dict, op: dict) -> Optional[str]:
    tags = workflow.get("tags")
    if isinstance(tags, list):
        workflow["tags"] = [t for t in tags if _tag_name(t) != op["tag"]]
    return None


HANDLERS: Dict[str, Callable[[dict, dict], Optional[str]]] = {
    "addNode": add_node,
    "removeNode": remove_node,
    "updateNode": update_node,
    "moveNode": move_node,
    "enableNode": enable_node,
    "disableNode": disable_node,
    "addConnection": add_connection,
    "removeConnection": remove_connection,
    "updateConnection": update_connection,
    "updateSettings": update_settings,
    "updateName": update_name,
    "addTag": add_tag,
    "removeTag": remove_tag,
}
