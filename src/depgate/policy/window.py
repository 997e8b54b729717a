"""Schedule-window and minimum-age eligibility checks."""

from __future__ import annotations

import warnings
from datetime import UTC, datetime, tzinfo
from zoneinfo import ZoneInfo

from depgate.errors import ClockSkewWarning
from depgate.policy.types import EffectivePolicy, Eligibility

GATE_AGE = "age"
GATE_WINDOW = "window"

REASON_ELIGIBLE = "eligible"
REASON_AGE_NOT_MET = "minimum age not met"
REASON_CLOCK_SKEW = "clock skew: evaluation time precedes publish time"
REASON_PUBLISH_TIME_UNKNOWN = "publish time unknown"
REASON_OUTSIDE_WINDOW = "outside schedule window"


def resolve_timezone(name: str) -> tzinfo:
    """Resolve an IANA timezone name. UTC needs no tz database."""
    if not name:
        raise ValueError("timezone name is empty")
    if name.upper() in {"UTC", "ETC/UTC", "Z"}:
        return UTC
    return ZoneInfo(name)


def is_eligible(
    policy: EffectivePolicy,
    now: datetime,
    version_published_at: datetime | None,
    *,
    timezone: str = "UTC",
) -> Eligibility:
    """Decide whether a candidate may be merged at ``now``.

    The age gate and the schedule gate are independent; both must pass.
    Naive timestamps are taken to be UTC. The reason names every failed
    gate and, for the age gate, whether the inputs or the policy refused.
    """
    now = _as_aware(now)
    failed: list[str] = []
    reasons: list[str] = []

    age_failure = _age_gate_failure(policy, now, version_published_at)
    if age_failure is not None:
        failed.append(GATE_AGE)
        reasons.append(age_failure)

    if policy.schedule:
        local_now = now.astimezone(resolve_timezone(timezone))
        if not any(window.contains(local_now) for window in policy.schedule):
            failed.append(GATE_WINDOW)
            reasons.append(REASON_OUTSIDE_WINDOW)

    if not failed:
        return Eligibility(eligible=True, reason=REASON_ELIGIBLE)
    return Eligibility(eligible=False, reason=" and ".join(reasons), failed_gates=tuple(failed))


def _age_gate_failure(
    policy: EffectivePolicy,
    now: datetime,
    version_published_at: datetime | None,
) -> str | None:
    if version_published_at is None:
        return None if policy.minimum_release_age is None else REASON_PUBLISH_TIME_UNKNOWN

    published = _as_aware(version_published_at)
    elapsed = now - published
    if elapsed.total_seconds() < 0:
        warnings.warn(
            f"evaluation time {now.isoformat()} precedes publish time {published.isoformat()}",
            ClockSkewWarning,
            stacklevel=3,
        )
        return REASON_CLOCK_SKEW

    if policy.minimum_release_age is not None and elapsed < policy.minimum_release_age:
        return REASON_AGE_NOT_MET
    return None


def _as_aware(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment
