"""depgate CLI - dependency update policy and CI gate commands."""

import json
import logging
import warnings
from datetime import UTC, datetime
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from depgate import __version__
from depgate.errors import ClockSkewWarning, InvalidRuleError, MissingOutcomeError
from depgate.gate import aggregate, find_aggregator_jobs, load_gate_graph, load_outcomes
from depgate.pins import scan_paths, unpinned_candidates
from depgate.policy import ensure_default_policy, evaluate, is_eligible, load_policy, resolve_policy_path
from depgate.policy.types import Candidate, UpdateType
from depgate.reporting import decision_to_dict, render_decision_markdown, write_gate_report

cli = typer.Typer(
    name="depgate",
    help="depgate - dependency update policy and CI gate aggregation",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)


def _version_option_callback(value: bool) -> None:
    """Handle eager --version option."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@cli.callback()
def _cli_callback(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log evaluation details to stderr.",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        help="Show depgate version and exit.",
        is_eager=True,
        callback=_version_option_callback,
    ),
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_time=False, show_path=False)],
        force=True,
    )


def _parse_timestamp(value: str | None, option: str) -> datetime | None:
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError as exc:
        console.print(f"[bold red]Error:[/bold red] {option} must be an ISO-8601 timestamp, got `{value}`")
        raise typer.Exit(1) from exc


# ============================================================================
# Policy Commands
# ============================================================================

policy_app = typer.Typer(
    name="policy",
    help="Dependency update policy commands",
    no_args_is_help=True,
)
cli.add_typer(policy_app, name="policy")


@policy_app.command(name="init")
def policy_init(
    repo_root: Path = typer.Option(
        Path("."),
        "--repo-root",
        help="Repository root path",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        help="Overwrite existing policy.yaml",
    ),
) -> None:
    """Create repo-local default policy document."""
    try:
        created = ensure_default_policy(repo_root, force=force)
    except FileExistsError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        console.print("[yellow]Use --force to overwrite.[/yellow]")
        raise typer.Exit(1) from exc

    console.print("[green]✓ Policy initialized[/green]")
    console.print(f"[cyan]Path:[/cyan] {created}")


@policy_app.command(name="validate")
def policy_validate(
    policy: Path | None = typer.Option(
        None,
        "--policy",
        help="Policy document path (default: $DEPGATE_POLICY or .depgate/policy.yaml)",
    ),
    repo_root: Path = typer.Option(
        Path("."),
        "--repo-root",
        help="Repository root path",
    ),
) -> None:
    """Validate a policy document (schema + rule semantics)."""
    path = resolve_policy_path(policy, repo_root=repo_root)
    try:
        document = load_policy(path)
    except InvalidRuleError as exc:
        console.print(f"[bold red]Invalid policy ({exc.reason_code}):[/bold red] {exc}")
        raise typer.Exit(1) from exc

    console.print(f"[green]✓ Policy valid[/green] ({len(document.rules)} rule(s))")
    console.print(f"[cyan]Path:[/cyan] {path}")


@policy_app.command(name="evaluate")
def policy_evaluate(
    manager: str = typer.Option(
        ...,
        "--manager",
        help="Update mechanism category (e.g. cargo, github-actions)",
    ),
    update_type: UpdateType = typer.Option(
        ...,
        "--update-type",
        help="Kind of version change",
    ),
    source_url: str | None = typer.Option(
        None,
        "--source-url",
        help="Origin identifier of the dependency",
    ),
    vulnerability_fix: bool = typer.Option(
        False,
        "--vulnerability-fix",
        help="Candidate fixes a known vulnerability",
    ),
    published_at: str | None = typer.Option(
        None,
        "--published-at",
        help="Version publish time (ISO-8601)",
    ),
    now: str | None = typer.Option(
        None,
        "--now",
        help="Evaluation time (ISO-8601, default: current UTC time)",
    ),
    policy: Path | None = typer.Option(
        None,
        "--policy",
        help="Policy document path",
    ),
    repo_root: Path = typer.Option(
        Path("."),
        "--repo-root",
        help="Repository root path",
    ),
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Print the decision as JSON",
    ),
) -> None:
    """Compute the effective policy and eligibility for one candidate.

    Exit codes:
      0 - Candidate eligible
      2 - Candidate not eligible
      1 - Invalid input or policy
    """
    now_value = _parse_timestamp(now, "--now") or datetime.now(UTC)
    published_value = _parse_timestamp(published_at, "--published-at")

    try:
        document = load_policy(resolve_policy_path(policy, repo_root=repo_root))
        candidate = Candidate(
            manager=manager,
            update_type=update_type,
            source_url=source_url,
            is_vulnerability_fix=vulnerability_fix,
            current_time=now_value,
        )
        effective = evaluate(candidate, document.rules, document.base, list_merge=document.list_merge)
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always", ClockSkewWarning)
            eligibility = is_eligible(effective, now_value, published_value, timezone=document.timezone)
    except ValueError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(1) from exc

    for warning in caught:
        err_console.print(f"[yellow]Warning:[/yellow] {warning.message}")

    if as_json:
        typer.echo(json.dumps(decision_to_dict(candidate, effective, eligibility), indent=2, sort_keys=True))
    else:
        console.print(render_decision_markdown(candidate, effective, eligibility))

    if not eligibility.eligible:
        raise typer.Exit(2)


# ============================================================================
# Gate Commands
# ============================================================================

gate_app = typer.Typer(
    name="gate",
    help="CI gate aggregation commands",
    no_args_is_help=True,
)
cli.add_typer(gate_app, name="gate")


@gate_app.command(name="aggregate")
def gate_aggregate(
    outcomes: Path = typer.Option(
        ...,
        "--outcomes",
        help="JSON outcome map (the `needs` context or {job: result})",
    ),
    require: list[str] = typer.Option(
        [],
        "--require",
        help="Prerequisite job (repeatable and/or comma-separated)",
    ),
    workflow: Path | None = typer.Option(
        None,
        "--workflow",
        help="Workflow file to read prerequisites from",
    ),
    job: str | None = typer.Option(
        None,
        "--job",
        help="Aggregator job in --workflow (default: the single always() job)",
    ),
    strict: bool = typer.Option(
        False,
        "--strict",
        help="Treat a missing outcome as a tooling error instead of a failure",
    ),
    out: Path | None = typer.Option(
        None,
        "--out",
        "-o",
        help="Directory for GATE_REPORT.json / GATE_REPORT.md",
    ),
    timestamp_mode: str = typer.Option(
        "deterministic",
        "--timestamp-mode",
        help="Timestamp mode: deterministic or wallclock",
    ),
) -> None:
    """Combine prerequisite outcomes into one pass/fail verdict.

    Exit codes:
      0 - Gate passed
      2 - Gate failed
      1 - Tooling error
    """
    try:
        outcome_map = load_outcomes(outcomes)
        prerequisites = _resolve_prerequisites(require, workflow, job)
        result = aggregate(outcome_map, prerequisites, strict=strict)
        if out is not None:
            write_gate_report(result, out, timestamp_mode=timestamp_mode)
    except (OSError, ValueError, KeyError, MissingOutcomeError) as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(1) from exc

    if result.passed:
        console.print(f"[green]✓ {result.summary}[/green]")
    else:
        console.print(f"[bold red]✗ {result.summary}[/bold red]")
        raise typer.Exit(2)


@gate_app.command(name="graph")
def gate_graph(
    workflow: Path = typer.Option(
        ...,
        "--workflow",
        help="Workflow file",
    ),
) -> None:
    """Print the prerequisite graph of a workflow as JSON."""
    try:
        graph = load_gate_graph(workflow)
        aggregators = find_aggregator_jobs(workflow)
    except (OSError, ValueError) as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(1) from exc

    payload = {
        "aggregators": list(aggregators),
        "graph": {name: sorted(needs) for name, needs in graph.items()},
    }
    typer.echo(json.dumps(payload, indent=2, sort_keys=True))


def _resolve_prerequisites(require: list[str], workflow: Path | None, job: str | None) -> list[str]:
    required = [item.strip() for raw in require for item in raw.split(",") if item.strip()]
    if workflow is None:
        if not required:
            raise ValueError("Either --require or --workflow is required")
        return required

    graph = load_gate_graph(workflow)
    if job is None:
        aggregators = find_aggregator_jobs(workflow)
        if len(aggregators) != 1:
            raise ValueError(
                f"Cannot infer aggregator job from {workflow.name} "
                f"(found {len(aggregators)}); pass --job"
            )
        job = aggregators[0]
    if job not in graph:
        raise KeyError(f"job `{job}` has no prerequisites in {workflow.name}")
    return sorted(graph[job] | set(required))


# ============================================================================
# Pin Commands
# ============================================================================

pins_app = typer.Typer(
    name="pins",
    help="Workflow action pin commands",
    no_args_is_help=True,
)
cli.add_typer(pins_app, name="pins")


@pins_app.command(name="scan")
def pins_scan(
    paths: list[Path] = typer.Argument(
        ...,
        help="Workflow files or directories",
    ),
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Print findings as JSON",
    ),
) -> None:
    """List action references; exit 2 if any is not pinned to a digest."""
    try:
        pins = scan_paths(paths)
    except OSError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(1) from exc

    candidates = list(unpinned_candidates(pins))

    if as_json:
        payload = {
            "pins": [
                {
                    "path": pin.path,
                    "line": pin.line,
                    "action": pin.action,
                    "ref": pin.ref,
                    "version": pin.version_comment,
                    "pinned": pin.pinned,
                }
                for pin in pins
            ],
            "candidates": [
                {"manager": c.manager, "updateType": c.update_type.value, "sourceUrl": c.source_url}
                for c in candidates
            ],
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
    else:
        for pin in pins:
            mark = "[green]✓[/green]" if pin.pinned else "[yellow]✗[/yellow]"
            version = f" ({pin.version_comment})" if pin.version_comment else ""
            console.print(f"{mark} {pin.path}:{pin.line} {pin.action}@{pin.ref}{version}")

    if candidates:
        raise typer.Exit(2)


def main() -> None:
    cli()
