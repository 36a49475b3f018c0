# flowguard/utils/node_types.py
"""
Node type naming helpers.

Workflows reference node types by their full package name
(`n8n-nodes-base.httpRequest`, `@n8n/n8n-nodes-langchain.agent`). Registries
often index the short package form (`nodes-base.httpRequest`). The short form
is never valid inside a workflow.
"""

from typing import List, Optional

BASE_PACKAGE = "n8n-nodes-base"
LANGCHAIN_PACKAGE = "@n8n/n8n-nodes-langchain"

# workflow form -> registry short form
_PACKAGE_ALIASES = {
    f"{BASE_PACKAGE}.": "nodes-base.",
    f"{LANGCHAIN_PACKAGE}.": "nodes-langchain.",
}

LEGACY_PREFIXES = ("nodes-base.", "nodes-langchain.")

_TRIGGER_KEYS = ("trigger", "webhook")
_TRIGGER_SHORT = ("start", "manualtrigger", "formtrigger", "crontrigger", "cron")


def short_type(node_type: Optional[str]) -> str:
    """Strip any package/namespace prefix and lowercase: `PkgA.Switch` -> `switch`."""
    text = str(node_type or "")
    return text.rsplit(".", 1)[-1].strip().lower()


def is_legacy_prefixed(node_type: Optional[str]) -> bool:
    return str(node_type or "").startswith(LEGACY_PREFIXES)


def to_workflow_type(node_type: str) -> str:
    """`nodes-base.set` -> `n8n-nodes-base.set`; other strings unchanged."""
    for full, short in _PACKAGE_ALIASES.items():
        if node_type.startswith(short):
            return full + node_type[len(short):]
    return node_type


def registry_candidates(node_type: str) -> List[str]:
    """Lookup keys to try, most specific first."""
    out = [node_type]
    for full, short in _PACKAGE_ALIASES.items():
        if node_type.startswith(full):
            out.append(short + node_type[len(full):])
    return out


def is_trigger_type(node_type: Optional[str]) -> bool:
    label = str(node_type or "").lower()
    if any(k in label for k in _TRIGGER_KEYS):
        return True
    return short_type(node_type) in _TRIGGER_SHORT


def is_webhook_type(node_type: Optional[str]) -> bool:
    return short_type(node_type) in ("webhook", "webhooktrigger")


def is_annotation_type(node_type: Optional[str]) -> bool:
    """Sticky notes sit on the canvas but never run."""
    return short_type(node_type) == "stickynote"


def is_agent_type(node_type: Optional[str]) -> bool:
    return short_type(node_type) == "agent" or "langchain.agent" in str(node_type or "")
