import time

from flowguard.structural.metrics import find_unreachable_nodes, longest_chain
from flowguard.utils.graph import (
    build_adjacency, build_dag, detect_cycle, find_orphans, iter_connections, resolve_node,
)


def _is_cycle(path, adjacency):
    if len(path) < 2 or path[0] != path[-1]:
        return False
    return all(b in adjacency[a] for a, b in zip(path, path[1:]))


def test_adjacency_flattens_every_kind_and_port(make_node):
    wf = {
        "nodes": [make_node("A", "x.a"), make_node("B", "x.b"), make_node("C", "x.c"), make_node("D", "x.d")],
        "connections": {
            "A": {
                "main": [[{"node": "B", "type": "main", "index": 0}], [{"node": "C", "type": "main", "index": 0}]],
                "ai_tool": [[{"node": "D", "type": "ai_tool", "index": 0}]],
            },
        },
    }
    adj = build_adjacency(wf)
    assert adj["A"] == ["B", "C", "D"]
    assert adj["B"] == [] and adj["D"] == []
    assert len(list(iter_connections(wf))) == 3
    assert len(list(iter_connections(wf, kinds=("main",)))) == 2


def test_detect_cycle_none_for_dag(linear_workflow):
    assert detect_cycle(build_adjacency(linear_workflow)) is None


def test_detect_cycle_returns_closed_path():
    adj = {"A": ["B"], "B": ["C"], "C": ["D", "A"], "D": []}
    path = detect_cycle(adj)
    assert path is not None
    assert _is_cycle(path, adj), path
    assert set(path) == {"A", "B", "C"}


def test_detect_cycle_self_loop():
    adj = {"A": ["A"]}
    assert detect_cycle(adj) == ["A", "A"]


def test_detect_cycle_large_graph_is_fast():
    n = 5000
    adj = {f"n{i}": [f"n{i + 1}"] for i in range(n)}
    adj[f"n{n}"] = ["n0"]
    start = time.perf_counter()
    path = detect_cycle(adj)
    assert time.perf_counter() - start < 1.0
    assert _is_cycle(path, adj)
    assert len(path) == n + 2


def test_find_orphans_skips_triggers_and_disabled(make_node):
    wf = {
        "nodes": [
            make_node("Start", "n8n-nodes-base.manualTrigger"),
            make_node("Lonely", "n8n-nodes-base.set"),
            make_node("Off", "n8n-nodes-base.set", disabled=True),
            make_node("Note", "n8n-nodes-base.stickyNote"),
        ],
        "connections": {},
    }
    assert [n["name"] for n in find_orphans(wf)] == ["Lonely"]


def test_find_orphans_ignores_unusable_names(make_node):
    wf = {
        "nodes": [make_node({"x": 1}, "n8n-nodes-base.set"), make_node("B", "n8n-nodes-base.set")],
        "connections": {"A": {"main": [[{"node": ["B"]}]]}},
    }
    assert [n["name"] for n in find_orphans(wf)] == ["B"]


def test_resolve_node_id_wins_over_name(make_node):
    wf = {"nodes": [make_node("A", "x.a", id="1"), make_node("B", "x.b", id="2")], "connections": {}}
    node, err = resolve_node(wf, node_id="2", name="A")
    assert err is None and node["name"] == "B"


def test_resolve_node_reports_missing_and_ambiguous(make_node):
    wf = {"nodes": [make_node("Dup", "x.a", id="1"), make_node("Dup", "x.b", id="2")], "connections": {}}
    node, err = resolve_node(wf, name="Dup")
    assert node is None and "ambiguous" in err
    node, err = resolve_node(wf, name="Nope")
    assert node is None and err == "Node not found: Nope"
    node, err = resolve_node(wf)
    assert node is None and err


def test_resolve_node_name_in_id_slot(make_node):
    wf = {"nodes": [make_node("Set", "x.set", id="abc")], "connections": {}}
    node, err = resolve_node(wf, node_id="Set")
    assert err is None and node["id"] == "abc"


def test_build_dag_drops_dangling_edges(make_node):
    wf = {
        "nodes": [make_node("A", "x.a"), make_node("B", "x.b")],
        "connections": {"A": {"main": [[{"node": "B"}, {"node": "Ghost"}]]}},
    }
    G = build_dag(wf)
    assert set(G.nodes) == {"A", "B"}
    assert list(G.edges) == [("A", "B")]
    assert G.edges["A", "B"]["kind"] == "main"


def test_unreachable_and_longest_chain(make_node, chain):
    wf = {
        "nodes": [
            make_node("Trigger", "n8n-nodes-base.manualTrigger"),
            make_node("A", "x.a"), make_node("B", "x.b"),
            make_node("X", "x.x"), make_node("Y", "x.y"),
        ],
        "connections": {**chain("Trigger", "A", "B"), **chain("X", "Y")},
    }
    assert sorted(find_unreachable_nodes(wf)) == ["X", "Y"]
    assert longest_chain(wf) == ["Trigger", "A", "B"]
