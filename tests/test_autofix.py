import pytest

from flowguard.autofix import generate_fixes
from flowguard.diff.engine import WorkflowDiffEngine
from flowguard.config import Settings
from flowguard.validation.workflow import WorkflowValidator


@pytest.fixture
def broken(make_node, chain):
    return {
        "nodes": [
            make_node("Trigger", "n8n-nodes-base.manualTrigger"),
            make_node("Route", "n8n-nodes-base.switch", typeVersion=3,
                      parameters={"rules": {"conditions": {"values": [{"value1": "a"}]}}}),
            make_node("Greet", "n8n-nodes-base.set", typeVersion=9,
                      parameters={"text": "Hello {{ $json.name }}"}),
        ],
        "connections": chain("Trigger", "Route", "Greet"),
    }


def _fix(workflow, report, **kwargs):
    return generate_fixes(workflow, report, **kwargs)


def test_fixes_cover_patterns_expressions_and_versions(registry, broken):
    report = WorkflowValidator(registry=registry).validate(broken, profile="ai-friendly")
    result = _fix(broken, report)
    kinds = sorted(f.type for f in result.fixes)
    assert kinds == ["expression-format", "fixed-collection", "typeversion-correction"]
    assert result.stats["total"] == 3
    assert result.stats["byConfidence"] == {"high": 2, "medium": 1, "low": 0}
    assert result.summary.startswith("Fixed ")

    by_node = {op["nodeName"]: op["changes"] for op in result.operations}
    assert by_node["Route"] == {"parameters": {"rules": {"values": [{"conditions": {"value1": "a"}, "outputKey": "output1"}]}}}
    assert by_node["Greet"] == {"parameters.text": "=Hello {{ $json.name }}", "typeVersion": 3.4}


def test_applied_fixes_clear_the_findings(registry, broken):
    validator = WorkflowValidator(registry=registry)
    report = validator.validate(broken, profile="ai-friendly")
    result = _fix(broken, report)
    applied = WorkflowDiffEngine(settings=Settings(max_operations=10)).apply_diff(broken, {"operations": result.operations})
    assert applied.success, applied.errors
    after = validator.validate(applied.workflow, profile="ai-friendly")
    for code in ("pattern_violation", "expression_format", "type_version_exceeds_max"):
        assert not after.issues_for(code), code


def test_confidence_threshold_and_filters(registry, broken):
    report = WorkflowValidator(registry=registry).validate(broken, profile="ai-friendly")
    high = _fix(broken, report, confidence_threshold="high")
    assert {f.type for f in high.fixes} == {"fixed-collection", "expression-format"}

    only = _fix(broken, report, fix_types=["typeversion-correction"])
    assert [f.type for f in only.fixes] == ["typeversion-correction"]
    assert only.operations == [{"type": "updateNode", "nodeName": "Greet", "changes": {"typeVersion": 3.4}}]

    capped = _fix(broken, report, max_fixes=1)
    assert capped.stats["total"] == 1

    with pytest.raises(ValueError):
        _fix(broken, report, confidence_threshold="certain")


def test_no_fixes(registry, linear_workflow):
    report = WorkflowValidator(registry=registry).validate(linear_workflow)
    result = _fix(linear_workflow, report)
    assert result.operations == [] and result.fixes == []
    assert result.summary == "No fixes available"


def test_error_output_fixes(make_node):
    def endpoint(name):
        return {"node": name, "type": "main", "index": 0}

    wf = {
        "nodes": [
            make_node("Trigger", "n8n-nodes-base.manualTrigger"),
            make_node("Call", "n8n-nodes-base.noOp", onError="continueErrorOutput"),
            make_node("Mixed", "n8n-nodes-base.noOp"),
            make_node("Next", "n8n-nodes-base.noOp"),
            make_node("Handle Error", "n8n-nodes-base.noOp"),
        ],
        "connections": {
            "Trigger": {"main": [[endpoint("Call"), endpoint("Mixed")]]},
            "Call": {"main": [[endpoint("Next")]]},
            "Mixed": {"main": [[endpoint("Next"), endpoint("Handle Error")]]},
        },
    }
    report = WorkflowValidator().validate(wf)

    medium = _fix(wf, report)
    assert medium.operations == [{"type": "updateNode", "nodeName": "Call", "changes": {"onError": None}}]

    low = _fix(wf, report, confidence_threshold="low")
    ops = low.operations
    assert {"type": "updateNode", "nodeName": "Mixed", "changes": {"onError": "continueErrorOutput"}} in ops
    assert {"type": "removeConnection", "source": "Mixed", "target": "Handle Error", "sourceIndex": 0} in ops
    assert {"type": "addConnection", "source": "Mixed", "target": "Handle Error", "sourceIndex": 1} in ops

    applied = WorkflowDiffEngine(settings=Settings(max_operations=10)).apply_diff(wf, {"operations": ops})
    assert applied.success, applied.errors
    assert applied.workflow["connections"]["Mixed"]["main"] == [[endpoint("Next")], [endpoint("Handle Error")]]
    assert "onError" not in applied.workflow["nodes"][1]
    assert not WorkflowValidator().validate(applied.workflow).issues_for("error_output_misconfigured")


def test_node_type_correction(registry, linear_workflow):
    linear_workflow["nodes"][1]["type"] = "n8n-nodes-base.http"
    report = WorkflowValidator(registry=registry).validate(linear_workflow)
    result = _fix(linear_workflow, report)
    (fix,) = result.fixes
    assert fix.type == "node-type-correction"
    assert fix.after == "n8n-nodes-base.httpRequest"
    assert result.operations[0]["changes"] == {"type": "n8n-nodes-base.httpRequest"}
