# flowguard/utils/graph.py
from typing import Dict, Any, Iterator, List, Optional, Tuple
import networkx as nx

from flowguard.utils.node_types import is_annotation_type, is_trigger_type

# n8n connections: connections[<sourceName>][<kind>][<outputIndex>] -> list of {node, type, index}
OUTPUT_KINDS = ("main", "error", "ai_tool")

WHITE, GRAY, BLACK = 0, 1, 2


def node_list(workflow: Dict[str, Any]) -> List[dict]:
    nodes = workflow.get("nodes") or []
    if not isinstance(nodes, list):
        return []
    return [n for n in nodes if isinstance(n, dict)]


def nodes_by_name(workflow: Dict[str, Any]) -> Dict[str, dict]:
    return {n["name"]: n for n in node_list(workflow) if isinstance(n.get("name"), str)}


def nodes_by_id(workflow: Dict[str, Any]) -> Dict[str, dict]:
    return {n["id"]: n for n in node_list(workflow) if isinstance(n.get("id"), str)}


def iter_connections(workflow: Dict[str, Any], kinds=None) -> Iterator[Tuple[str, str, int, dict]]:
    """
    Yield (source_name, kind, output_index, endpoint) for every endpoint in the
    connection map. Malformed entries are skipped; callers report them.
    Every output kind is walked unless `kinds` narrows it.
    """
    conns = workflow.get("connections") or {}
    if not isinstance(conns, dict):
        return
    for src_name, outs in conns.items():
        if not isinstance(outs, dict):
            continue
        for kind, ports in outs.items():
            if kinds is not None and kind not in kinds:
                continue
            if not isinstance(ports, list):
                continue
            for out_idx, port in enumerate(ports):
                if not isinstance(port, list):
                    continue
                for endpoint in port:
                    if isinstance(endpoint, dict):
                        yield src_name, kind, out_idx, endpoint


def build_adjacency(workflow: Dict[str, Any]) -> Dict[str, List[str]]:
    """
    Flatten every output kind and port into plain successor edges keyed by node
    name. Every node gets a key, including ones without edges.
    """
    adj: Dict[str, List[str]] = {name: [] for name in nodes_by_name(workflow)}
    for src, _kind, _idx, endpoint in iter_connections(workflow):
        tgt = endpoint.get("node")
        if not isinstance(tgt, str):
            continue
        succ = adj.setdefault(src, [])
        if tgt not in succ:
            succ.append(tgt)
        adj.setdefault(tgt, [])
    return adj


def detect_cycle(adjacency: Dict[str, List[str]]) -> Optional[List[str]]:
    """
    Iterative depth-first search with a three-color marker per node.

    Returns:
        The first cycle found as a closed path ([a, b, a]), or None.
    """
    color: Dict[str, int] = {}
    parent: Dict[str, Optional[str]] = {}

    for root in adjacency:
        if color.get(root, WHITE) != WHITE:
            continue
        color[root] = GRAY
        parent[root] = None
        stack = [(root, iter(adjacency.get(root, ())))]
        while stack:
            node, succ = stack[-1]
            advanced = False
            for nxt in succ:
                state = color.get(nxt, WHITE)
                if state == WHITE:
                    color[nxt] = GRAY
                    parent[nxt] = node
                    stack.append((nxt, iter(adjacency.get(nxt, ()))))
                    advanced = True
                    break
                if state == GRAY:
                    # back edge: walk parents from node up to nxt
                    path = [node]
                    cur = node
                    while cur != nxt:
                        cur = parent[cur]
                        path.append(cur)
                    path.reverse()
                    path.append(nxt)
                    return path
            if not advanced:
                color[node] = BLACK
                stack.pop()
    return None


def find_orphans(workflow: Dict[str, Any]) -> List[dict]:
    """Enabled, non-trigger nodes with no incoming and no outgoing edge."""
    connected = set()
    for src, _kind, _idx, endpoint in iter_connections(workflow):
        connected.add(src)
        if isinstance(endpoint.get("node"), str):
            connected.add(endpoint["node"])
    orphans = []
    for n in node_list(workflow):
        if n.get("disabled") or is_trigger_type(n.get("type")) or is_annotation_type(n.get("type")):
            continue
        if isinstance(n.get("name"), str) and n["name"] not in connected:
            orphans.append(n)
    return orphans


def resolve_node(workflow: Dict[str, Any], node_id: Optional[str] = None,
                 name: Optional[str] = None) -> Tuple[Optional[dict], Optional[str]]:
    """
    Resolve a node by id or name. Id wins when both are given. A reference that
    matches nothing, or a name that matches several nodes, is reported.

    Returns:
        (node, None) on success, (None, message) otherwise
    """
    nodes = node_list(workflow)
    if node_id is None and name is None:
        return None, "Node reference requires nodeId or nodeName"

    if node_id is not None:
        for n in nodes:
            if n.get("id") == node_id:
                return n, None
        # agents often pass a name in the id slot
        if name is None:
            matches = [n for n in nodes if n.get("name") == node_id]
            if len(matches) == 1:
                return matches[0], None
            if len(matches) > 1:
                return None, f"Node reference is ambiguous: {len(matches)} nodes named '{node_id}'"
            return None, f"Node not found: {node_id}"

    matches = [n for n in nodes if n.get("name") == name]
    if len(matches) == 1:
        return matches[0], None
    if len(matches) > 1:
        return None, f"Node reference is ambiguous: {len(matches)} nodes named '{name}'"
    return None, f"Node not found: {name if node_id is None else node_id}"


def build_dag(workflow: Dict[str, Any]) -> nx.DiGraph:
    """
    Build a networkx DiGraph keyed by node name from n8n native json
    (nodes + connections). Dangling endpoints are left out.
    """
    G = nx.DiGraph()
    by_name = nodes_by_name(workflow)
    for name, n in by_name.items():
        G.add_node(name, type=n.get("type"), disabled=bool(n.get("disabled")))
    for src, kind, idx, endpoint in iter_connections(workflow):
        tgt = endpoint.get("node")
        if isinstance(tgt, str) and src in by_name and tgt in by_name:
            G.add_edge(src, tgt, kind=kind, output=idx)
    return G
