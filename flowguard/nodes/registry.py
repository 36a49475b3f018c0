# flowguard/nodes/registry.py
"""
Node type registry.

The validator only needs `lookup(node_type) -> info | None`, where info carries
at least `displayName` and `properties`. Any object with that method works;
`InMemoryNodeRegistry` backs the CLI and the tests.
"""

import copy
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from flowguard.utils.io import load_any
from flowguard.utils.logger import get_logger
from flowguard.utils.node_types import registry_candidates, to_workflow_type

log = get_logger("registry")


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    return None


def supported_versions(info: Dict[str, Any]) -> List[float]:
    """`version` may be a single number or a list of numbers."""
    raw = info.get("version")
    values = raw if isinstance(raw, list) else [raw]
    return sorted(v for v in (_as_number(x) for x in values) if v is not None)


def latest_version(info: Dict[str, Any]) -> Optional[float]:
    versions = supported_versions(info)
    return versions[-1] if versions else None


def is_versioned(info: Dict[str, Any]) -> bool:
    if "isVersioned" in info:
        return bool(info["isVersioned"])
    return len(supported_versions(info)) > 1


class InMemoryNodeRegistry:
    def __init__(self, node_types: Optional[Union[Dict[str, dict], Iterable[dict]]] = None):
        self._types: Dict[str, Dict[str, Any]] = {}
        if isinstance(node_types, dict):
            for key, info in node_types.items():
                self.register(key, info)
        elif node_types:
            for info in node_types:
                self.register(info["nodeType"], info)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "InMemoryNodeRegistry":
        """
        Load a registry from JSON or YAML. Accepted shapes:
          - {"nodes": [{"nodeType": ..., ...}, ...]}
          - [{"nodeType": ..., ...}, ...]
          - {"<nodeType>": {...}, ...}
        """
        data = load_any(path)
        if isinstance(data, dict) and isinstance(data.get("nodes"), list):
            data = data["nodes"]
        reg = cls(data)
        log.debug("loaded %d node types from %s", len(reg), path)
        return reg

    def __len__(self) -> int:
        return len(self._types)

    def __contains__(self, node_type: str) -> bool:
        return self.lookup(node_type) is not None

    def register(self, node_type: str, info: Dict[str, Any]) -> None:
        entry = copy.deepcopy(info)
        entry.setdefault("nodeType", node_type)
        entry.setdefault("displayName", node_type.rsplit(".", 1)[-1])
        entry.setdefault("properties", [])
        self._types[node_type] = entry

    def lookup(self, node_type: str) -> Optional[Dict[str, Any]]:
        for key in registry_candidates(node_type):
            if key in self._types:
                return copy.deepcopy(self._types[key])
        return None

    def list_types(self) -> List[str]:
        """Registered types in workflow form (`n8n-nodes-base.x`)."""
        return sorted(to_workflow_type(k) for k in self._types)
