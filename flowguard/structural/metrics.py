# flowguard/structural/metrics.py

import networkx as nx
from typing import Any, Dict, List

from flowguard.utils.graph import build_dag, iter_connections, node_list
from flowguard.utils.node_types import is_agent_type, is_annotation_type, is_trigger_type

LONG_CHAIN_THRESHOLD = 10


def trigger_names(workflow: Dict[str, Any]) -> List[str]:
    return [
        n["name"] for n in node_list(workflow)
        if isinstance(n.get("name"), str) and is_trigger_type(n.get("type"))
    ]


def compute_statistics(workflow: Dict[str, Any]) -> Dict[str, int]:
    """Node counts; connection and expression counters are filled in by the checks."""
    nodes = [n for n in node_list(workflow) if not is_annotation_type(n.get("type"))]
    return {
        "totalNodes": len(nodes),
        "enabledNodes": sum(1 for n in nodes if not n.get("disabled")),
        "triggerNodes": sum(1 for n in nodes if is_trigger_type(n.get("type"))),
        "validConnections": 0,
        "invalidConnections": 0,
        "expressionsValidated": 0,
    }


def find_unreachable_nodes(workflow: Dict[str, Any]) -> List[str]:
    """
    Enabled nodes that no trigger reaches. Empty when the workflow has no
    trigger at all (the missing trigger is reported on its own).
    """
    G = build_dag(workflow)
    triggers = [t for t in trigger_names(workflow) if t in G]
    if not triggers:
        return []
    reachable = set(triggers)
    for t in triggers:
        reachable |= nx.descendants(G, t)
    out = []
    for n in node_list(workflow):
        name = n.get("name")
        if name in reachable or n.get("disabled") or is_annotation_type(n.get("type")):
            continue
        if name in G and G.degree(name) == 0:
            # isolated nodes are already reported as orphans
            continue
        out.append(name)
    return out


def longest_chain(workflow: Dict[str, Any]) -> List[str]:
    """Longest path over `main` connections; empty when the graph has a cycle."""
    G = build_dag(workflow)
    main = nx.DiGraph()
    main.add_nodes_from(G.nodes)
    main.add_edges_from((u, v) for u, v, d in G.edges(data=True) if d.get("kind") == "main")
    if not nx.is_directed_acyclic_graph(main):
        return []
    return list(nx.dag_longest_path(main))


def agents_without_tools(workflow: Dict[str, Any]) -> List[dict]:
    """Agent nodes with no `ai_tool` link in either direction."""
    linked = set()
    for src, _kind, _idx, endpoint in iter_connections(workflow, kinds=("ai_tool",)):
        linked.add(src)
        if isinstance(endpoint.get("node"), str):
            linked.add(endpoint["node"])
    return [
        n for n in node_list(workflow)
        if is_agent_type(n.get("type")) and not n.get("disabled") and n.get("name") not in linked
    ]


def count_expressions(value: Any, depth: int = 0) -> int:
    if depth > 64:
        return 0
    if isinstance(value, str):
        return value.count("{{")
    if isinstance(value, dict):
        return sum(count_expressions(v, depth + 1) for v in value.values())
    if isinstance(value, list):
        return sum(count_expressions(v, depth + 1) for v in value)
    return 0
