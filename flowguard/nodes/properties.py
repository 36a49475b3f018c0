# flowguard/nodes/properties.py
"""
Property-level checks against registry schema: visibility-aware required
check, primitive type checks and option membership.
"""

from typing import Any, Dict, List

from flowguard.validation.report import Category, ValidationIssue, error

_MISSING = object()


def _expected(values: Any) -> List[Any]:
    return values if isinstance(values, list) else [values]


def _sibling_value(key: str, config: Dict[str, Any], properties: List[dict]) -> Any:
    """Configured value, else the sibling property's declared default."""
    if key in config:
        return config[key]
    for prop in properties:
        if prop.get("name") == key and "default" in prop:
            return prop["default"]
    return _MISSING


def is_property_visible(prop: Dict[str, Any], config: Dict[str, Any], properties: List[dict] = ()) -> bool:
    """
    `displayOptions.show`: every listed key must currently hold one of its values.
    `displayOptions.hide`: any listed key holding one of its values hides it.
    """
    options = prop.get("displayOptions")
    if not isinstance(options, dict):
        return True

    show = options.get("show") or {}
    for key, values in show.items():
        if _sibling_value(key, config, list(properties)) not in _expected(values):
            return False

    hide = options.get("hide") or {}
    for key, values in hide.items():
        if _sibling_value(key, config, list(properties)) in _expected(values):
            return False
    return True


def split_visibility(properties: List[dict], config: Dict[str, Any]):
    """
    Returns:
        (visible_names, hidden_names)
    """
    visible, hidden = [], []
    for prop in properties:
        name = prop.get("name")
        if not name:
            continue
        (visible if is_property_visible(prop, config, properties) else hidden).append(name)
    return visible, hidden


def _is_expression(value: Any) -> bool:
    return isinstance(value, str) and (value.startswith("=") or "{{" in value)


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    return "object"


def _option_values(prop: Dict[str, Any]) -> List[Any]:
    return [o.get("value") if isinstance(o, dict) else o for o in prop.get("options") or []]


def check_properties(node: Dict[str, Any], properties: List[dict]) -> List[ValidationIssue]:
    config = node.get("parameters") or {}
    if not isinstance(config, dict):
        return []
    issues: List[ValidationIssue] = []

    flagged = set()
    for prop in properties:
        name = prop.get("name")
        if not name or not prop.get("required") or name in flagged:
            continue
        if not is_property_visible(prop, config, properties):
            continue
        value = config.get(name, _MISSING)
        if value is _MISSING or value is None or value == "":
            flagged.add(name)
            label = prop.get("displayName") or name
            issues.append(error(
                "missing_required_property", Category.SCHEMA,
                f"Required property '{label}' is missing",
                node, property=name, fix=f"Add {name} to your configuration",
            ))

    for key, value in config.items():
        if _is_expression(value):
            continue
        # a name can be declared several times under different displayOptions
        prop = next(
            (p for p in properties if p.get("name") == key and is_property_visible(p, config, properties)),
            None,
        )
        if prop is None:
            continue
        ptype = prop.get("type")
        if ptype in ("string", "number", "boolean") and _type_name(value) != ptype:
            issues.append(error(
                "invalid_property_type", Category.SCHEMA,
                f"Property '{key}' must be a {ptype}, got {_type_name(value)}",
                node, property=key, fix=f"Change {key} to a {ptype} value",
            ))
        elif ptype == "options" and prop.get("options"):
            valid = _option_values(prop)
            if value not in valid:
                issues.append(error(
                    "invalid_option_value", Category.SCHEMA,
                    f"Invalid value for '{key}'. Must be one of: {', '.join(str(v) for v in valid)}",
                    node, property=key, fix=f"Change {key} to one of the valid options",
                ))
    return issues
