from flowguard.structural.checker import check_error_outputs, is_error_handler
from flowguard.validation.workflow import validate_workflow


def _endpoint(name):
    return {"node": name, "type": "main", "index": 0}


def _workflow(make_node, on_error=None, main=None, node_type="n8n-nodes-base.httpRequest"):
    extra = {"onError": on_error} if on_error else {}
    return {
        "nodes": [
            make_node("Trigger", "n8n-nodes-base.manualTrigger"),
            make_node("Fetch", node_type, parameters={"url": "https://example.com"}, **extra),
            make_node("Save Result", "n8n-nodes-base.set"),
            make_node("Error Handler", "n8n-nodes-base.set"),
        ],
        "connections": {
            "Trigger": {"main": [[_endpoint("Fetch")]]},
            "Fetch": {"main": main if main is not None else [[_endpoint("Save Result")]]},
        },
    }


def test_mixed_main_zero_reported_once(make_node):
    wf = _workflow(make_node, "continueErrorOutput", [[_endpoint("Save Result"), _endpoint("Error Handler")]])
    report = validate_workflow(wf)
    hits = report.issues_for("error_output_misconfigured")
    assert len(hits) == 1
    msg = hits[0].message
    assert "Incorrect error output configuration" in msg
    assert "Error Handler" in msg
    assert "INCORRECT (current):" in msg and "CORRECT (should be):" in msg
    assert "main[1] = error output" in msg
    assert hits[0].node_name == "Fetch"
    assert hits[0].details == {"successTargets": ["Save Result"], "errorTargets": ["Error Handler"]}
    assert not report.issues_for("error_output_missing_connections")


def test_mixed_main_zero_without_on_error_asks_for_it(make_node):
    wf = _workflow(make_node, None, [[_endpoint("Save Result"), _endpoint("Error Handler")]])
    (hit,) = check_error_outputs(wf)
    assert hit.code == "error_output_misconfigured"
    assert '"onError": "continueErrorOutput"' in hit.message


def test_correct_error_output(make_node):
    wf = _workflow(make_node, "continueErrorOutput", [[_endpoint("Save Result")], [_endpoint("Error Handler")]])
    assert check_error_outputs(wf) == []


def test_on_error_without_error_connections(make_node):
    wf = _workflow(make_node, "continueErrorOutput")
    (hit,) = check_error_outputs(wf)
    assert hit.code == "error_output_missing_connections"
    assert hit.is_error and hit.property_path == "onError"


def test_error_connections_without_on_error(make_node):
    wf = _workflow(make_node, None, [[_endpoint("Save Result")], [_endpoint("Error Handler")]])
    (hit,) = check_error_outputs(wf)
    assert hit.code == "error_output_missing_on_error"
    assert not hit.is_error


def test_branching_nodes_use_main_one_as_a_branch(make_node):
    wf = _workflow(make_node, None, [[_endpoint("Save Result")], [_endpoint("Error Handler")]], node_type="n8n-nodes-base.if")
    assert check_error_outputs(wf) == []


def test_error_handler_detection():
    assert is_error_handler({"name": "Catch Failures", "type": "n8n-nodes-base.set"})
    assert is_error_handler({"name": "Reply", "type": "n8n-nodes-base.respondToWebhook"})
    assert not is_error_handler({"name": "Save Result", "type": "n8n-nodes-base.set"})
