#!/usr/bin/env python3
# flowguard/cli.py

import json
from pathlib import Path
from typing import Any, Optional

import typer

from flowguard.autofix import CONFIDENCE_LEVELS, generate_fixes
from flowguard.config import Settings
from flowguard.diff.engine import WorkflowDiffEngine
from flowguard.errors import InputValidationError
from flowguard.nodes.registry import InMemoryNodeRegistry
from flowguard.nodes.similarity import NodeSimilarityService
from flowguard.structural.patterns import StructuralPatternValidator, get_all_patterns
from flowguard.utils.cache import TTLCache
from flowguard.utils.io import load_any, write_json
from flowguard.utils.logger import get_logger, init_logger
from flowguard.validation.profiles import PROFILE_NAMES
from flowguard.validation.workflow import WorkflowValidator

app = typer.Typer(help="flowguard CLI - validate and edit n8n-style workflow graphs")
log = get_logger("cli")


def _settings(**overrides) -> Settings:
    settings = Settings.from_env(**overrides)
    init_logger(level=settings.log_level, log_file=settings.log_file)
    return settings


def _echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))


def _load(path: Path, what: str) -> Any:
    try:
        return load_any(path)
    except (ValueError, OSError) as e:
        raise typer.BadParameter(f"Cannot read {what} '{path}': {e}")


def _validator(settings: Settings, registry: Optional[Path]) -> WorkflowValidator:
    cache = TTLCache(ttl=settings.cache_ttl)
    reg = InMemoryNodeRegistry.from_file(registry) if registry is not None else None
    similarity = NodeSimilarityService(reg.list_types() if reg is not None else (), cache=cache)
    return WorkflowValidator(
        registry=reg,
        similarity=similarity,
        patterns=StructuralPatternValidator(cache=cache),
        settings=settings,
    )


def _check_profile(profile: Optional[str]) -> None:
    if profile is not None and profile not in PROFILE_NAMES:
        raise typer.BadParameter(f"Invalid profile '{profile}'. Choose one of: {', '.join(PROFILE_NAMES)}")


@app.command()
def validate(
    input: Path = typer.Option(..., "--input", "-i", exists=True, readable=True, help="Workflow JSON or YAML"),
    registry: Optional[Path] = typer.Option(None, "--registry", "-r", exists=True, readable=True, help="Node type catalog (JSON or YAML)"),
    profile: Optional[str] = typer.Option(None, "--profile", "-p", help="minimal | runtime | ai-friendly | strict"),
    no_expressions: bool = typer.Option(False, "--no-expressions", help="Skip expression checks"),
    report: Optional[Path] = typer.Option(None, "--report", help="Write the JSON report to this path"),
):
    """
    Validate a workflow and print the report. Exits 1 when the workflow has errors.
    """
    _check_profile(profile)
    settings = _settings(default_profile=profile)
    wf = _load(input, "workflow")
    try:
        result = _validator(settings, registry).validate(wf, validate_expressions=not no_expressions)
    except InputValidationError as e:
        raise typer.BadParameter(str(e))

    payload = result.to_dict()
    if report is not None:
        write_json(report, payload)
        log.info("wrote report to %s", report)
    _echo_json(payload)
    if not result.valid:
        raise typer.Exit(code=1)


@app.command()
def diff(
    input: Path = typer.Option(..., "--input", "-i", exists=True, readable=True, help="Workflow JSON or YAML"),
    ops: Path = typer.Option(..., "--ops", exists=True, readable=True, help="Diff request, or a bare list of operations"),
    validate_only: bool = typer.Option(False, "--validate-only", help="Check the operations without applying them"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write the edited workflow to this path"),
    max_operations: Optional[int] = typer.Option(None, "--max-operations", min=1, help="Override the per-request operation cap"),
):
    """
    Apply a batch of diff operations atomically. Exits 1 when the batch is rejected.
    """
    settings = _settings(max_operations=max_operations)
    wf = _load(input, "workflow")
    request = _load(ops, "operations")
    if isinstance(request, list):
        request = {"operations": request}
    if validate_only and isinstance(request, dict):
        request = dict(request, validateOnly=True)

    try:
        result = WorkflowDiffEngine(settings=settings).apply_diff(wf, request)
    except InputValidationError as e:
        raise typer.BadParameter(str(e))

    if out is not None and result.workflow is not None:
        write_json(out, result.workflow)
        log.info("wrote workflow to %s", out)
    _echo_json(result.to_dict())
    if not result.success:
        raise typer.Exit(code=1)


@app.command()
def autofix(
    input: Path = typer.Option(..., "--input", "-i", exists=True, readable=True, help="Workflow JSON or YAML"),
    registry: Optional[Path] = typer.Option(None, "--registry", "-r", exists=True, readable=True, help="Node type catalog (JSON or YAML)"),
    profile: str = typer.Option("ai-friendly", "--profile", "-p", help="Profile used to find issues"),
    confidence: str = typer.Option("medium", "--confidence", help="Lowest fix confidence kept: high | medium | low"),
    max_fixes: int = typer.Option(50, "--max-fixes", min=0, help="Cap on the number of fixes"),
    apply: bool = typer.Option(False, "--apply", help="Apply the generated operations"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write the fixed workflow to this path (with --apply)"),
):
    """
    Propose fixes for a workflow as diff operations, optionally applying them.
    """
    _check_profile(profile)
    confidence = confidence.lower()
    if confidence not in CONFIDENCE_LEVELS:
        raise typer.BadParameter(f"Invalid confidence '{confidence}'. Choose one of: {', '.join(CONFIDENCE_LEVELS)}")

    settings = _settings(default_profile=profile)
    wf = _load(input, "workflow")
    try:
        report = _validator(settings, registry).validate(wf)
    except InputValidationError as e:
        raise typer.BadParameter(str(e))
    fixes = generate_fixes(wf, report, confidence_threshold=confidence, max_fixes=max_fixes)
    payload = fixes.to_dict()

    if apply and fixes.operations:
        # the fix set is applied as one batch
        engine = WorkflowDiffEngine(settings=settings.with_overrides(
            max_operations=max(settings.max_operations, len(fixes.operations)),
        ))
        applied = engine.apply_diff(wf, {"operations": fixes.operations})
        payload["applied"] = {k: v for k, v in applied.to_dict().items() if k != "workflow"}
        if applied.success and out is not None:
            write_json(out, applied.workflow)
            log.info("wrote fixed workflow to %s", out)
        if not applied.success:
            _echo_json(payload)
            raise typer.Exit(code=1)
    _echo_json(payload)


@app.command()
def patterns():
    """
    List the structural pattern table.
    """
    _settings()
    _echo_json(get_all_patterns())


if __name__ == "__main__":
    app()
