import copy

import pytest

from flowguard.errors import InputValidationError
from flowguard.expression.validator import MSG_INPUT_NO_INPUT
from flowguard.validation.workflow import WorkflowValidator, validate_workflow


def codes(issues):
    return [i.code for i in issues]


def test_linear_workflow_is_valid(registry, linear_workflow):
    report = WorkflowValidator(registry=registry).validate(linear_workflow)
    assert report.valid, [e.message for e in report.errors]
    assert report.warnings == []
    stats = report.statistics
    assert stats["totalNodes"] == 3
    assert stats["enabledNodes"] == 3
    assert stats["triggerNodes"] == 1
    assert stats["validConnections"] == 2
    assert stats["invalidConnections"] == 0


def test_validation_is_idempotent(registry, linear_workflow):
    validator = WorkflowValidator(registry=registry)
    before = copy.deepcopy(linear_workflow)
    first = validator.validate(linear_workflow, profile="strict").to_dict()
    second = validator.validate(linear_workflow, profile="strict").to_dict()
    assert first == second
    assert linear_workflow == before


def test_switch_pattern_reported_once(make_node, chain):
    wf = {
        "nodes": [
            make_node("Trigger", "n8n-nodes-base.manualTrigger"),
            make_node("Route", "n8n-nodes-base.switch", typeVersion=3,
                      parameters={"rules": {"conditions": {"values": [{"value1": "a"}]}}}),
            make_node("Done", "n8n-nodes-base.noOp"),
        ],
        "connections": chain("Trigger", "Route", "Done"),
    }
    report = validate_workflow(wf, profile="minimal")
    hits = report.issues_for("pattern_violation")
    assert len(hits) == 1
    hit = hits[0]
    assert hit.property_path == "rules.conditions.values"
    assert hit.node_name == "Route"
    assert hit.details["autofix"] == {"rules": {"values": [{"conditions": {"value1": "a"}, "outputKey": "output1"}]}}


def test_input_without_input_data(make_node):
    wf = {
        "nodes": [
            make_node("Hook", "n8n-nodes-base.webhook", parameters={"path": "in"}),
            make_node("Use Input", "n8n-nodes-base.set", parameters={"value": "={{ $input.item.json.x }}"}),
        ],
        "connections": {"Hook": {"main": [[]]}},
    }
    report = validate_workflow(wf)
    messages = [e.message for e in report.issues_for("expression_error")]
    assert any(MSG_INPUT_NO_INPUT in m for m in messages), messages
    assert report.issues_for("expression_error")[0].node_name == "Use Input"


def test_expressions_can_be_disabled(make_node, chain):
    wf = {
        "nodes": [
            make_node("Trigger", "n8n-nodes-base.manualTrigger", parameters={"x": "{{ $input.all() }}"}),
            make_node("Next", "n8n-nodes-base.noOp"),
        ],
        "connections": chain("Trigger", "Next"),
    }
    assert validate_workflow(wf).issues_for("expression_error")
    assert not validate_workflow(wf, validate_expressions=False).issues_for("expression_error")


def test_legacy_prefix_rejected_before_lookup(registry, linear_workflow):
    linear_workflow["nodes"][2]["type"] = "nodes-base.set"
    report = WorkflowValidator(registry=registry).validate(linear_workflow, profile="minimal")
    hits = report.issues_for("invalid_node_type")
    assert len(hits) == 1
    assert 'Use "n8n-nodes-base.set"' in hits[0].message
    assert not report.issues_for("outdated_type_version")


def test_package_less_type_is_invalid_without_registry(linear_workflow):
    linear_workflow["nodes"][2]["type"] = "set"
    report = validate_workflow(linear_workflow, profile="minimal")
    assert codes(report.errors) == ["invalid_node_type"]


def test_unknown_type_suggests_alternatives(registry, linear_workflow):
    linear_workflow["nodes"][1]["type"] = "n8n-nodes-base.httpRequst"
    report = WorkflowValidator(registry=registry).validate(linear_workflow, profile="minimal")
    hit = report.issues_for("unknown_node_type")[0]
    assert hit.fix == "n8n-nodes-base.httpRequest"
    assert "Did you mean" in hit.message
    assert hit.details["suggestions"][0]["nodeType"] == "n8n-nodes-base.httpRequest"


@pytest.mark.parametrize("profile", ["minimal", "runtime", "ai-friendly", "strict"])
def test_critical_checks_survive_every_profile(profile, make_node):
    wf = {
        "nodes": [
            make_node("Trigger", "n8n-nodes-base.manualTrigger"),
            make_node("Route", "n8n-nodes-base.if", parameters={"conditions": {"values": [{"a": 1}]}}),
        ],
        "connections": {
            "Trigger": {"main": [[{"node": "Route", "type": "main", "index": 0}]]},
            "Route": {"main": [[{"node": "Ghost", "type": "main", "index": 0}]]},
        },
    }
    report = validate_workflow(wf, profile=profile)
    found = set(codes(report.errors))
    assert {"pattern_violation", "unknown_connection_target"} <= found
    assert not report.valid


def test_profiles_gate_warnings(registry, linear_workflow):
    linear_workflow["nodes"][2]["typeVersion"] = 3
    validator = WorkflowValidator(registry=registry)
    assert not validator.validate(linear_workflow, profile="runtime").issues_for("outdated_type_version")
    outdated = validator.validate(linear_workflow, profile="ai-friendly").issues_for("outdated_type_version")
    assert len(outdated) == 1 and outdated[0].details["suggestedVersion"] == 3.4

    strict = validator.validate(linear_workflow, profile="strict")
    assert [i.node_name for i in strict.issues_for("missing_error_handling")] == ["HTTP Request"]

    assert validator.validate(linear_workflow, profile="minimal").suggestions == []
    assert validator.validate(linear_workflow, profile="runtime").suggestions


def test_unknown_profile_raises(linear_workflow):
    with pytest.raises(InputValidationError):
        validate_workflow(linear_workflow, profile="paranoid")


def test_non_mapping_workflow_raises():
    with pytest.raises(InputValidationError):
        validate_workflow(["not", "a", "workflow"])


def test_type_versions(registry, linear_workflow):
    validator = WorkflowValidator(registry=registry)

    linear_workflow["nodes"][2]["typeVersion"] = 5
    hit = validator.validate(linear_workflow).issues_for("type_version_exceeds_max")[0]
    assert hit.message == "typeVersion 5 exceeds maximum supported version 3.4"

    del linear_workflow["nodes"][2]["typeVersion"]
    hit = validator.validate(linear_workflow).issues_for("missing_type_version")[0]
    assert hit.message == "Missing required property 'typeVersion'. Add typeVersion: 3.4"
    assert hit.is_error


def test_required_property_respects_visibility(registry, linear_workflow):
    validator = WorkflowValidator(registry=registry)
    http = linear_workflow["nodes"][1]

    assert not validator.validate(linear_workflow).issues_for("missing_required_property")

    http["parameters"]["sendBody"] = True
    missing = validator.validate(linear_workflow).issues_for("missing_required_property")
    assert [m.property_path for m in missing] == ["body"]
    assert missing[0].message == "Required property 'Body' is missing"

    del http["parameters"]["url"]
    http["parameters"]["body"] = "payload"
    missing = validator.validate(linear_workflow).issues_for("missing_required_property")
    assert [m.property_path for m in missing] == ["url"]


def test_property_types_and_options(registry, linear_workflow):
    params = linear_workflow["nodes"][1]["parameters"]
    params["url"] = 42
    params["method"] = "FETCH"
    report = WorkflowValidator(registry=registry).validate(linear_workflow)
    assert report.issues_for("invalid_property_type")[0].property_path == "url"
    assert report.issues_for("invalid_option_value")[0].message.startswith("Invalid value for 'method'")


def test_connection_problems(make_node):
    wf = {
        "nodes": [
            make_node("Trigger", "n8n-nodes-base.manualTrigger", id="t"),
            make_node("A", "n8n-nodes-base.noOp", id="a"),
            make_node("B", "n8n-nodes-base.noOp", id="b", disabled=True),
        ],
        "connections": {
            "Trigger": {"main": [[{"node": "a", "type": "main", "index": 0}]]},
            "A": {"main": [[{"node": "B", "type": "main", "index": 0}]]},
            "Nowhere": {"main": [[{"node": "A", "type": "main", "index": 0}]]},
        },
    }
    report = validate_workflow(wf)
    by_code = {i.code: i for i in report.errors + report.warnings}
    assert "instead of node name 'A'" in by_code["connection_uses_node_id"].message
    assert by_code["unknown_connection_source"].message == 'Connection from non-existent node: "Nowhere"'
    assert by_code["connection_to_disabled"].severity.value == "warning"
    assert report.statistics["invalidConnections"] == 2
    assert any("Use node NAMES" in s for s in report.suggestions)


def test_cycle_and_orphan(make_node):
    wf = {
        "nodes": [
            make_node("Trigger", "n8n-nodes-base.manualTrigger"),
            make_node("A", "n8n-nodes-base.noOp"),
            make_node("B", "n8n-nodes-base.noOp"),
            make_node("Alone", "n8n-nodes-base.noOp"),
        ],
        "connections": {
            "Trigger": {"main": [[{"node": "A", "type": "main", "index": 0}]]},
            "A": {"main": [[{"node": "B", "type": "main", "index": 0}]]},
            "B": {"main": [[{"node": "A", "type": "main", "index": 0}]]},
        },
    }
    report = validate_workflow(wf)
    cycle = report.issues_for("workflow_cycle")[0]
    assert cycle.details["cycle"] == ["A", "B", "A"]
    assert "A -> B -> A" in cycle.message
    orphan = report.issues_for("orphan_node")[0]
    assert orphan.node_name == "Alone" and not orphan.is_error


def test_workflow_shape_errors(make_node):
    assert validate_workflow({"nodes": [], "connections": {}}).issues_for("empty_workflow")
    broken = validate_workflow({"nodes": "nope"})
    assert broken.issues_for("workflow_structure")
    assert not broken.valid

    single = {"nodes": [make_node("Set", "n8n-nodes-base.set")], "connections": {}}
    assert validate_workflow(single).issues_for("single_node_workflow")
    hook = {"nodes": [make_node("Hook", "n8n-nodes-base.webhook", parameters={"path": "x"})], "connections": {}}
    assert not validate_workflow(hook).issues_for("single_node_workflow")

    unlinked = {"nodes": [make_node("A", "n8n-nodes-base.set"), make_node("B", "n8n-nodes-base.set")], "connections": {}}
    assert validate_workflow(unlinked).issues_for("no_connections")

    dup = {
        "nodes": [make_node("A", "n8n-nodes-base.manualTrigger", id="1"), make_node("A", "n8n-nodes-base.set", id="1")],
        "connections": {"A": {"main": [[]]}},
    }
    report = validate_workflow(dup, profile="minimal")
    assert report.issues_for("duplicate_node_name") and report.issues_for("duplicate_node_id")


@pytest.mark.parametrize("field, value", [("name", {"x": 1}), ("name", ["A"]), ("id", {"x": 1}), ("id", [1])])
def test_unhashable_names_and_ids_are_reported(registry, linear_workflow, field, value):
    linear_workflow["nodes"][1][field] = value
    report = WorkflowValidator(registry=registry).validate(linear_workflow, profile="strict")
    assert not report.valid
    assert report.issues_for("workflow_structure")
    report.to_dict()


@pytest.mark.parametrize(
    "outputs",
    [None, "oops", {"main": 5}, {"main": [5]}, {"main": [[{"node": {"x": 1}}]]}, {"ai_tool": [[{"node": ["A"]}]]}],
)
def test_malformed_connection_containers_are_reported(registry, linear_workflow, outputs):
    linear_workflow["connections"]["HTTP Request"] = outputs
    report = WorkflowValidator(registry=registry).validate(linear_workflow, profile="strict")
    assert not report.valid
    assert report.issues_for("malformed_connection") or report.issues_for("workflow_structure")


def test_expression_format_warning_carries_correction(make_node, chain):
    wf = {
        "nodes": [
            make_node("Trigger", "n8n-nodes-base.manualTrigger"),
            make_node("Greet", "n8n-nodes-base.set", parameters={"text": "Hello {{ $json.name }}"}),
        ],
        "connections": chain("Trigger", "Greet"),
    }
    hit = validate_workflow(wf, profile="ai-friendly").issues_for("expression_format")[0]
    assert hit.details["correctedValue"] == "=Hello {{ $json.name }}"
    assert hit.details["fieldPath"] == "text"
    assert not validate_workflow(wf, profile="runtime").issues_for("expression_format")


def test_report_to_dict_is_camel_case(linear_workflow):
    linear_workflow["nodes"][2]["type"] = "set"
    data = validate_workflow(linear_workflow).to_dict()
    assert data["valid"] is False
    err = data["errors"][0]
    assert err["nodeName"] == "Set" and err["nodeId"] == "s1"
    assert err["severity"] == "error" and err["category"] == "schema"
