"""Scan workflow files for external action references and their pins."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from depgate.policy.types import Candidate, UpdateType

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator
    from pathlib import Path

ACTIONS_MANAGER = "github-actions"

_USES_RE = re.compile(
    r"""^\s*(?:-\s*)?uses:\s*["']?(?P<action>[^@\s"'#]+)@(?P<ref>[^\s"'#]+)["']?\s*(?:#\s*(?P<comment>.*\S))?\s*$"""
)
_DIGEST_RE = re.compile(r"^[0-9a-f]{40}$")


@dataclass(frozen=True)
class ActionPin:
    """One ``uses:`` reference found in a workflow."""

    path: str
    line: int
    action: str
    ref: str
    version_comment: str | None

    @property
    def pinned(self) -> bool:
        return bool(_DIGEST_RE.match(self.ref))

    @property
    def repository(self) -> str:
        # owner/repo/sub/path@ref -> owner/repo
        return "/".join(self.action.split("/")[:2])


def scan_workflow_pins(path: Path) -> list[ActionPin]:
    """List external action references in one workflow file."""
    pins: list[ActionPin] = []
    for number, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
        match = _USES_RE.match(line)
        if not match:
            continue
        action = match.group("action")
        if action.startswith("./") or action.startswith("docker://"):
            continue
        pins.append(
            ActionPin(
                path=path.as_posix(),
                line=number,
                action=action,
                ref=match.group("ref"),
                version_comment=match.group("comment"),
            )
        )
    return pins


def scan_paths(paths: Iterable[Path]) -> list[ActionPin]:
    """Scan files and directories (``*.yml``/``*.yaml``) in sorted order."""
    found: list[ActionPin] = []
    for path in paths:
        if path.is_dir():
            files = sorted(p for p in path.rglob("*") if p.suffix in {".yml", ".yaml"} and p.is_file())
        else:
            files = [path]
        for file_path in files:
            found.extend(scan_workflow_pins(file_path))
    return found


def unpinned_candidates(pins: Iterable[ActionPin]) -> Iterator[Candidate]:
    """Yield a pin candidate for every reference not locked to a digest."""
    seen: set[str] = set()
    for pin in pins:
        if pin.pinned or pin.repository in seen:
            continue
        seen.add(pin.repository)
        yield Candidate(
            manager=ACTIONS_MANAGER,
            update_type=UpdateType.PIN,
            source_url=f"https://github.com/{pin.repository}",
        )
