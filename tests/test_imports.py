import importlib

import pytest

MODULES = [
    "flowguard.autofix",
    "flowguard.cli",
    "flowguard.config",
    "flowguard.errors",
    "flowguard.diff.engine",
    "flowguard.diff.operations",
    "flowguard.expression.format",
    "flowguard.expression.validator",
    "flowguard.nodes.properties",
    "flowguard.nodes.registry",
    "flowguard.nodes.settings",
    "flowguard.nodes.similarity",
    "flowguard.nodes.specific",
    "flowguard.structural.checker",
    "flowguard.structural.metrics",
    "flowguard.structural.patterns",
    "flowguard.structural.schema",
    "flowguard.utils.cache",
    "flowguard.utils.graph",
    "flowguard.utils.io",
    "flowguard.utils.logger",
    "flowguard.utils.node_types",
    "flowguard.utils.paths",
    "flowguard.validation.profiles",
    "flowguard.validation.report",
    "flowguard.validation.workflow",
]


@pytest.mark.parametrize("name", MODULES)
def test_module_imports(name):
    importlib.import_module(name)


def test_issue_keeps_property_on_the_wire():
    from flowguard.validation.report import Category, error

    issue = error(
        "missing_required", Category.SCHEMA, "Required property 'url' is missing", {"name": "HTTP"}, property="url",
    )
    assert issue.is_error
    assert issue.property_path == "url"
    assert issue.to_dict()["property"] == "url"
