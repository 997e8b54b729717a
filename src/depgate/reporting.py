"""Deterministic report payloads and writers."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from depgate.policy.schedule import format_duration

if TYPE_CHECKING:
    from pathlib import Path

    from depgate.gate.types import GateResult
    from depgate.policy.types import Candidate, EffectivePolicy, Eligibility

GATE_REPORT_JSON = "GATE_REPORT.json"
GATE_REPORT_MD = "GATE_REPORT.md"
DETERMINISTIC_TIMESTAMP = "1970-01-01T00:00:00Z"


def generated_at(timestamp_mode: str) -> str:
    """Return the report timestamp for ``deterministic`` or ``wallclock`` mode."""
    if timestamp_mode == "deterministic":
        return DETERMINISTIC_TIMESTAMP
    if timestamp_mode in {"wallclock", "now"}:
        return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
    raise ValueError(
        f"Unsupported timestamp mode: {timestamp_mode}. Expected one of: deterministic, wallclock."
    )


def policy_to_dict(policy: EffectivePolicy) -> dict[str, Any]:
    return {
        "automerge": policy.automerge,
        "platformAutomerge": policy.platform_automerge,
        "labels": list(policy.labels),
        "schedule": [window.describe() for window in policy.schedule],
        "minimumReleaseAge": format_duration(policy.minimum_release_age),
        "dependencyDashboardApproval": policy.dependency_dashboard_approval,
        "groupName": policy.group_name,
        "matchedRules": list(policy.matched_rules),
        "overrides": list(policy.overrides),
    }


def decision_to_dict(
    candidate: Candidate,
    policy: EffectivePolicy,
    eligibility: Eligibility | None = None,
) -> dict[str, Any]:
    """Convert one candidate decision to a JSON payload."""
    payload: dict[str, Any] = {
        "candidate": {
            "manager": candidate.manager,
            "updateType": candidate.update_type.value,
            "sourceUrl": candidate.source_url,
            "isVulnerabilityFix": candidate.is_vulnerability_fix,
            "evaluatedAt": candidate.current_time.isoformat() if candidate.current_time else None,
        },
        "policy": policy_to_dict(policy),
    }
    if eligibility is not None:
        payload["eligibility"] = {
            "eligible": eligibility.eligible,
            "reason": eligibility.reason,
            "failedGates": list(eligibility.failed_gates),
        }
    return payload


def render_decision_markdown(
    candidate: Candidate,
    policy: EffectivePolicy,
    eligibility: Eligibility | None = None,
) -> str:
    lines = [
        "# Update Decision",
        "",
        f"- manager: {candidate.manager}",
        f"- update_type: {candidate.update_type.value}",
        f"- source_url: {candidate.source_url or 'none'}",
        f"- vulnerability_fix: {candidate.is_vulnerability_fix}",
        f"- evaluated_at: {candidate.current_time.isoformat() if candidate.current_time else 'none'}",
        "",
        "## Effective Policy",
        "",
        f"- automerge: {policy.automerge}",
        f"- platform_automerge: {policy.platform_automerge}",
        f"- labels: {', '.join(policy.labels) or 'none'}",
        f"- schedule: {'; '.join(w.describe() for w in policy.schedule) or 'at any time'}",
        f"- minimum_release_age: {format_duration(policy.minimum_release_age) or 'none'}",
        f"- dependency_dashboard_approval: {policy.dependency_dashboard_approval}",
        f"- group_name: {policy.group_name or 'none'}",
        f"- matched_rules: {', '.join(policy.matched_rules) or 'none'}",
        f"- overrides: {', '.join(policy.overrides) or 'none'}",
        "",
    ]
    if eligibility is not None:
        lines.extend(
            [
                "## Eligibility",
                "",
                f"- eligible: {eligibility.eligible}",
                f"- reason: {eligibility.reason}",
                "",
            ]
        )
    return "\n".join(lines)


def gate_result_to_dict(result: GateResult, *, timestamp_mode: str = "deterministic") -> dict[str, Any]:
    """Convert a gate result to a JSON payload."""
    return {
        "schema_version": "1.0",
        "generated_at": generated_at(timestamp_mode),
        "timestamp_mode": timestamp_mode,
        "verdict": result.verdict.value,
        "summary": result.summary,
        "prerequisites": list(result.prerequisites),
        "outcomes": dict(sorted(result.outcomes.items())),
        "failing": list(result.failing),
        "missing": list(result.missing),
    }


def render_gate_markdown(result: GateResult, *, timestamp_mode: str = "deterministic") -> str:
    """Render the human-readable gate report."""
    status_emoji = "✅" if result.passed else "❌"
    lines = [
        "# Gate Report",
        "",
        f"**Verdict**: {status_emoji} {result.verdict.value.upper()}",
        "",
        f"**Generated**: {generated_at(timestamp_mode)} ({timestamp_mode})",
        "",
        result.summary,
        "",
        "## Prerequisites",
        "",
        "| job | outcome |",
        "| --- | --- |",
    ]
    for job in result.prerequisites:
        outcome = "missing" if job in result.missing else result.outcomes[job]
        lines.append(f"| {job} | {outcome} |")
    lines.append("")

    lines.extend(["## Exit Code", ""])
    if result.passed:
        lines.append("0 (success - gate passed)")
    else:
        lines.append("2 (policy violation - gate failed)")
    lines.append("")
    return "\n".join(lines)


def write_gate_report(
    result: GateResult,
    out_dir: Path,
    *,
    timestamp_mode: str = "deterministic",
) -> tuple[Path, Path]:
    """Write GATE_REPORT.json and GATE_REPORT.md into ``out_dir``."""
    out_dir.mkdir(parents=True, exist_ok=True)

    json_path = out_dir / GATE_REPORT_JSON
    json_path.write_text(
        json.dumps(gate_result_to_dict(result, timestamp_mode=timestamp_mode), indent=2, sort_keys=True),
        encoding="utf-8",
    )
    md_path = out_dir / GATE_REPORT_MD
    md_path.write_text(render_gate_markdown(result, timestamp_mode=timestamp_mode), encoding="utf-8")
    return json_path, md_path
