# flowguard/structural/schema.py
from typing import Any, Dict, List

from jsonschema import Draft7Validator, ValidationError, validate

_POSITION = {
    "type": "array",
    "items": {"type": "number"},
    "minItems": 2,
    "maxItems": 2,
}

_ENDPOINT = {
    "type": "object",
    "required": ["node"],
    "properties": {
        "node": {"type": "string", "minLength": 1},
        # usually "main"
        "type": {"type": "string"},
        "index": {"type": "integer", "minimum": 0},
    },
    "additionalProperties": True,
}

WORKFLOW_SCHEMA = {
    "type": "object",
    "required": ["nodes", "connections"],
    "properties": {
        "id": {"type": ["string", "number", "null"]},
        "name": {"type": "string"},
        "nodes": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name", "type"],
                "properties": {
                    "id": {"type": "string"},
                    "name": {"type": "string", "minLength": 1},
                    "type": {"type": "string", "minLength": 1},
                    "typeVersion": {"type": "number"},
                    "position": _POSITION,
                    # parameters must be an object when present
                    "parameters": {"type": "object"},
                    "disabled": {"type": "boolean"},
                    "credentials": {"type": "object"},
                },
                "additionalProperties": True,
            },
        },
        # connections[<sourceName>][<kind>][<outputIndex>] -> list of endpoints
        "connections": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "additionalProperties": {
                    "type": "array",
                    "items": {
                        "anyOf": [
                            {"type": "array", "items": _ENDPOINT},
                            {"type": "null"},
                        ]
                    },
                },
            },
        },
        "settings": {"type": "object"},
        "tags": {"type": "array"},
        "active": {"type": "boolean"},
    },
    "additionalProperties": True,
}

DIFF_REQUEST_SCHEMA = {
    "type": "object",
    "required": ["operations"],
    "properties": {
        "id": {"type": ["string", "number", "null"]},
        "operations": {"type": "array"},
        "validateOnly": {"type": "boolean"},
    },
    "additionalProperties": True,
}

_NODE_REF = {
    "anyOf": [
        {"required": ["nodeId"], "properties": {"nodeId": {"type": "string", "minLength": 1}}},
        {"required": ["nodeName"], "properties": {"nodeName": {"type": "string", "minLength": 1}}},
    ]
}


def _op(required: List[str], properties: Dict[str, Any], node_ref: bool = False) -> Dict[str, Any]:
    schema: Dict[str, Any] = {
        "type": "object",
        "required": ["type"] + required,
        "properties": dict(properties, type={"type": "string"}, description={"type": "string"}),
        "additionalProperties": True,
    }
    if node_ref:
        schema["allOf"] = [_NODE_REF]
    return schema


_CONNECTION_FIELDS = {
    "source": {"type": "string", "minLength": 1},
    "target": {"type": "string", "minLength": 1},
    "sourceOutput": {"type": "string", "minLength": 1},
    "targetInput": {"type": "string", "minLength": 1},
    "sourceIndex": {"type": "integer", "minimum": 0},
    "targetIndex": {"type": "integer", "minimum": 0},
}

OPERATION_SCHEMAS: Dict[str, Dict[str, Any]] = {
    "addNode": _op(["node"], {
        "node": {
            "type": "object",
            "required": ["name", "type"],
            "properties": {
                "id": {"type": "string", "minLength": 1},
                "name": {"type": "string", "minLength": 1},
                "type": {"type": "string", "minLength": 1},
                "typeVersion": {"type": "number", "exclusiveMinimum": 0},
                "position": _POSITION,
                "parameters": {"type": "object"},
            },
        }
    }),
    "removeNode": _op([], {}, node_ref=True),
    "updateNode": _op(["changes"], {"changes": {"type": "object", "minProperties": 1}}, node_ref=True),
    "moveNode": _op(["position"], {"position": _POSITION}, node_ref=True),
    "enableNode": _op([], {}, node_ref=True),
    "disableNode": _op([], {}, node_ref=True),
    "addConnection": _op(["source", "target"], _CONNECTION_FIELDS),
    "removeConnection": _op(["source", "target"], _CONNECTION_FIELDS),
    "updateConnection": _op(["source", "target", "changes"], {
        "source": _CONNECTION_FIELDS["source"],
        "target": _CONNECTION_FIELDS["target"],
        "changes": {
            "type": "object",
            "properties": {
                k: _CONNECTION_FIELDS[k]
                for k in ("sourceOutput", "targetInput", "sourceIndex", "targetIndex")
            },
        },
    }),
    "updateSettings": _op(["settings"], {"settings": {"type": "object"}}),
    "updateName": _op(["name"], {"name": {"type": "string", "minLength": 1}}),
    "addTag": _op(["tag"], {"tag": {"type": "string", "minLength": 1}}),
    "removeTag": _op(["tag"], {"tag": {"type": "string", "minLength": 1}}),
}


def _describe(err: ValidationError) -> str:
    path = "/".join(str(p) for p in err.absolute_path)
    return f"{err.message} (at '{path}')" if path else err.message


def schema_errors(instance: Any, schema: Dict[str, Any], limit: int = 20) -> List[str]:
    """All violations of `schema`, shallowest first, as readable strings."""
    found = sorted(Draft7Validator(schema).iter_errors(instance), key=lambda e: (len(e.absolute_path), list(map(str, e.absolute_path))))
    return [_describe(e) for e in found[:limit]]


def first_schema_error(instance: Any, schema: Dict[str, Any]) -> str:
    """Empty string when `instance` is valid."""
    try:
        validate(instance=instance, schema=schema)
    except ValidationError as e:
        return _describe(e)
    return ""
