# flowguard/validation/profiles.py
"""
Validation profiles.

Every issue code belongs to one tier. A profile is the set of tiers it
reports; `critical` and `required` are in every profile.
"""

from typing import Dict, FrozenSet

from flowguard.errors import InputValidationError

CRITICAL = "critical"
REQUIRED = "required"
RUNTIME = "runtime"
QUALITY = "quality"
PEDANTIC = "pedantic"

TIER_ORDER = (CRITICAL, REQUIRED, RUNTIME, QUALITY, PEDANTIC)

CRITICAL_CODES: FrozenSet[str] = frozenset({
    "workflow_structure",
    "empty_workflow",
    "invalid_node_type",
    "unknown_node_type",
    "unknown_connection_source",
    "unknown_connection_target",
    "connection_uses_node_id",
    "malformed_connection",
    "pattern_violation",
    "duplicate_node_name",
    "duplicate_node_id",
})

CODE_TIERS: Dict[str, str] = {
    # required
    "single_node_workflow": REQUIRED,
    "no_connections": REQUIRED,
    "workflow_cycle": REQUIRED,
    "missing_type_version": REQUIRED,
    "invalid_type_version": REQUIRED,
    "type_version_exceeds_max": REQUIRED,
    "missing_required_property": REQUIRED,
    "error_output_misconfigured": REQUIRED,
    "error_output_missing_connections": REQUIRED,
    # runtime
    "no_trigger": RUNTIME,
    "connection_to_disabled": RUNTIME,
    "orphan_node": RUNTIME,
    "invalid_property_type": RUNTIME,
    "invalid_option_value": RUNTIME,
    "expression_error": RUNTIME,
    "invalid_on_error": RUNTIME,
    "misplaced_node_setting": RUNTIME,
    "conflicting_error_handling": RUNTIME,
    "invalid_retry_config": RUNTIME,
    "invalid_setting_type": RUNTIME,
    "error_output_missing_on_error": RUNTIME,
    "credentials_missing_id": RUNTIME,
    "http_missing_url": RUNTIME,
    "http_invalid_url": RUNTIME,
    "webhook_missing_path": RUNTIME,
    "code_empty": RUNTIME,
    "cron_invalid_expression": RUNTIME,
    "email_missing_recipient": RUNTIME,
    "sql_missing_query": RUNTIME,
    "slack_missing_channel": RUNTIME,
    # quality
    "expression_warning": QUALITY,
    "expression_format": QUALITY,
    "outdated_type_version": QUALITY,
    "deprecated_continue_on_fail": QUALITY,
    "retry_config_warning": QUALITY,
    "unreachable_node": QUALITY,
    "long_chain": QUALITY,
    "ai_agent_without_tools": QUALITY,
    "http_missing_body": QUALITY,
    "webhook_path_format": QUALITY,
    "code_missing_return": QUALITY,
    "email_missing_subject": QUALITY,
    "sql_expression_in_query": QUALITY,
    "sql_unbounded_write": QUALITY,
    # pedantic
    "execute_once_notice": PEDANTIC,
    "missing_error_handling": PEDANTIC,
}

PROFILES: Dict[str, Dict[str, object]] = {
    "minimal": {
        "tiers": frozenset({CRITICAL, REQUIRED}),
        "suggestions": False,
    },
    "runtime": {
        "tiers": frozenset({CRITICAL, REQUIRED, RUNTIME}),
        "suggestions": True,
    },
    "ai-friendly": {
        "tiers": frozenset({CRITICAL, REQUIRED, RUNTIME, QUALITY}),
        "suggestions": True,
    },
    "strict": {
        "tiers": frozenset(TIER_ORDER),
        "suggestions": True,
    },
}

PROFILE_NAMES = tuple(PROFILES)


def tier_of(code: str, critical_codes: FrozenSet[str] = CRITICAL_CODES) -> str:
    if code in critical_codes:
        return CRITICAL
    return CODE_TIERS.get(code, RUNTIME)


class Profile:
    def __init__(self, name: str, critical_codes: FrozenSet[str] = CRITICAL_CODES):
        if name not in PROFILES:
            raise InputValidationError(
                f"Unknown profile '{name}'. Choose one of: {', '.join(PROFILE_NAMES)}"
            )
        self.name = name
        self.tiers = PROFILES[name]["tiers"]
        self.suggestions = bool(PROFILES[name]["suggestions"])
        self.critical_codes = frozenset(critical_codes)

    def reports(self, code: str) -> bool:
        """Critical codes are always reported, whatever the profile."""
        if code in self.critical_codes:
            return True
        return tier_of(code, self.critical_codes) in self.tiers

    def __repr__(self) -> str:
        return f"Profile({self.name!r})"
