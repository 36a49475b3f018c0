# flowguard/nodes/similarity.py
"""Suggestions for unknown node types. Purely advisory."""

import difflib
from typing import Any, Dict, Iterable, List, Optional

from flowguard.utils.cache import TTLCache
from flowguard.utils.node_types import is_legacy_prefixed, short_type, to_workflow_type

# bare or mistyped names agents commonly produce
COMMON_MISTAKES = {
    "webhook": "n8n-nodes-base.webhook",
    "http": "n8n-nodes-base.httpRequest",
    "httprequest": "n8n-nodes-base.httpRequest",
    "request": "n8n-nodes-base.httpRequest",
    "code": "n8n-nodes-base.code",
    "function": "n8n-nodes-base.code",
    "functionitem": "n8n-nodes-base.code",
    "javascript": "n8n-nodes-base.code",
    "set": "n8n-nodes-base.set",
    "if": "n8n-nodes-base.if",
    "switch": "n8n-nodes-base.switch",
    "merge": "n8n-nodes-base.merge",
    "schedule": "n8n-nodes-base.scheduleTrigger",
    "cron": "n8n-nodes-base.scheduleTrigger",
    "manual": "n8n-nodes-base.manualTrigger",
    "start": "n8n-nodes-base.manualTrigger",
    "email": "n8n-nodes-base.emailSend",
    "gmail": "n8n-nodes-base.gmail",
    "slack": "n8n-nodes-base.slack",
    "sheets": "n8n-nodes-base.googleSheets",
    "googlesheets": "n8n-nodes-base.googleSheets",
    "postgres": "n8n-nodes-base.postgres",
    "postgresql": "n8n-nodes-base.postgres",
    "mysql": "n8n-nodes-base.mySql",
    "agent": "@n8n/n8n-nodes-langchain.agent",
    "aiagent": "@n8n/n8n-nodes-langchain.agent",
    "openai": "@n8n/n8n-nodes-langchain.openAi",
}


class NodeSimilarityService:
    def __init__(self, known_types: Iterable[str] = (), cache: Optional[TTLCache] = None,
                 limit: int = 3, cutoff: float = 0.6):
        self.known_types = sorted(set(known_types))
        self.limit = limit
        self.cutoff = cutoff
        self._cache = cache
        self._by_short: Dict[str, List[str]] = {}
        for t in self.known_types:
            self._by_short.setdefault(short_type(t), []).append(t)

    def suggest(self, node_type: str) -> List[Dict[str, Any]]:
        """
        Returns:
            ranked list of {"nodeType", "confidence", "reason"}
        """
        if self._cache is None:
            return self._compute(node_type)
        return self._cache.get_or_compute(("similar", node_type), lambda: self._compute(node_type))

    def _compute(self, node_type: str) -> List[Dict[str, Any]]:
        out: List[Dict[str, Any]] = []
        seen = set()

        def add(candidate: str, confidence: float, reason: str) -> None:
            if candidate in seen or candidate == node_type:
                return
            seen.add(candidate)
            out.append({"nodeType": candidate, "confidence": round(confidence, 2), "reason": reason})

        text = str(node_type or "")
        if is_legacy_prefixed(text):
            add(to_workflow_type(text), 0.95, "Use the full package prefix")

        key = short_type(text)
        compact = key.replace("-", "").replace("_", "").replace(" ", "")
        if compact in COMMON_MISTAKES:
            add(COMMON_MISTAKES[compact], 0.9, "Common node type mistake")

        for short in difflib.get_close_matches(compact, list(self._by_short), n=self.limit, cutoff=self.cutoff):
            ratio = difflib.SequenceMatcher(None, compact, short).ratio()
            for full in self._by_short[short]:
                add(full, 0.8 * ratio, "Similar node type name")

        return out[: self.limit]

    def best(self, node_type: str) -> Optional[str]:
        found = self.suggest(node_type)
        return found[0]["nodeType"] if found else None
