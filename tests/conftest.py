import copy

import pytest

from flowguard.nodes.registry import InMemoryNodeRegistry

NODE_TYPES = {
    "nodes-base.manualTrigger": {"displayName": "Manual Trigger", "version": 1},
    "nodes-base.webhook": {
        "displayName": "Webhook",
        "version": [1, 1.1, 2],
        "properties": [
            {"name": "path", "displayName": "Path", "type": "string", "required": True},
            {"name": "httpMethod", "displayName": "HTTP Method", "type": "options",
             "options": [{"value": "GET"}, {"value": "POST"}], "default": "GET"},
        ],
    },
    "nodes-base.httpRequest": {
        "displayName": "HTTP Request",
        "version": [1, 2, 3, 4, 4.1, 4.2],
        "properties": [
            {"name": "url", "displayName": "URL", "type": "string", "required": True},
            {"name": "method", "displayName": "Method", "type": "options", "default": "GET",
             "options": [{"value": v} for v in ("GET", "POST", "PUT", "PATCH", "DELETE")]},
            {"name": "sendBody", "displayName": "Send Body", "type": "boolean", "default": False},
            {"name": "body", "displayName": "Body", "type": "string", "required": True,
             "displayOptions": {"show": {"sendBody": [True]}}},
        ],
    },
    "nodes-base.set": {"displayName": "Edit Fields (Set)", "version": [3, 3.1, 3.2, 3.3, 3.4]},
    "nodes-base.switch": {"displayName": "Switch", "version": [1, 2, 3]},
    "nodes-base.if": {"displayName": "If", "version": [1, 2]},
    "nodes-base.code": {"displayName": "Code", "version": [1, 2]},
}


@pytest.fixture
def registry():
    return InMemoryNodeRegistry(copy.deepcopy(NODE_TYPES))


@pytest.fixture
def make_node():
    counter = {"n": 0}

    def _make(name, node_type, **extra):
        counter["n"] += 1
        node = {
            "id": extra.pop("id", f"node-{counter['n']}"),
            "name": name,
            "type": node_type,
            "typeVersion": extra.pop("typeVersion", 1),
            "position": extra.pop("position", [counter["n"] * 200, 0]),
            "parameters": extra.pop("parameters", {}),
        }
        node.update(extra)
        return node

    return _make


def link(*names, kind="main"):
    """connections for a straight chain a -> b -> c"""
    conns = {}
    for src, dst in zip(names, names[1:]):
        conns.setdefault(src, {}).setdefault(kind, [[]])[0].append({"node": dst, "type": "main", "index": 0})
    return conns


@pytest.fixture
def chain():
    return link


@pytest.fixture
def linear_workflow(make_node, chain):
    """Manual Trigger -> HTTP Request -> Set, valid against the test registry."""
    return {
        "name": "Linear",
        "nodes": [
            make_node("Manual Trigger", "n8n-nodes-base.manualTrigger", id="t1"),
            make_node(
                "HTTP Request", "n8n-nodes-base.httpRequest", id="h1", typeVersion=4.2,
                parameters={"url": "https://example.com/api", "method": "GET"},
            ),
            make_node("Set", "n8n-nodes-base.set", id="s1", typeVersion=3.4, parameters={"mode": "manual"}),
        ],
        "connections": chain("Manual Trigger", "HTTP Request", "Set"),
        "settings": {"executionOrder": "v1"},
    }
