"""Pytest configuration and fixtures for depgate tests."""
from pathlib import Path

import pytest
import yaml

from depgate.policy.loader import DEFAULT_POLICY_TEMPLATE


def pytest_sessionfinish(session, exitstatus):
    """Check that coverage data was collected if --cov was requested.

    This prevents silent "no data collected" scenarios that produce 0% coverage
    without failing the test run.
    """
    cov_enabled = any("--cov" in str(arg) for arg in session.config.args)

    if not cov_enabled:
        return

    coverage_files = list(Path.cwd().glob(".coverage*"))

    if not coverage_files:
        pytest.exit(
            "Coverage was enabled but no data was collected. "
            "Check that tests import from 'depgate' (the package) not 'src/depgate' (filesystem path).",
            returncode=1
        )


@pytest.fixture
def write_policy(tmp_path: Path):
    """Write a policy document under tmp_path and return its path."""

    def _write(document: dict | None = None, *, name: str = "policy.yaml") -> Path:
        path = tmp_path / name
        payload = DEFAULT_POLICY_TEMPLATE if document is None else document
        path.write_text(yaml.safe_dump(payload, sort_keys=True), encoding="utf-8")
        return path

    return _write


BUILD_WORKFLOW = """
on:
  pull_request:
  push:
    branches:
      - main

name: build

jobs:
  tests:
    name: Tests
    runs-on: ubuntu-latest
    steps:
      - uses: actions/checkout@11bd71901bbe5b1630ceea73d27597364c9af683 # v4
      - uses: dtolnay/rust-toolchain@56f84321dbccf38fb67ce29ab63e4754056677e0 # stable
        with:
          toolchain: stable
      - run: cargo test --all-features

  test_wasm:
    name: Test WebAssembly (WASI)
    runs-on: ubuntu-latest
    steps:
      - uses: actions/checkout@11bd71901bbe5b1630ceea73d27597364c9af683 # v4
      - uses: taiki-e/install-action@v2
        with:
          tool: wasmtime

  fmt_lint:
    name: Format/Lint
    runs-on: ubuntu-latest
    steps:
      - uses: actions/checkout@v4
      - run: cargo fmt --all --check

  build:
    runs-on: ubuntu-latest
    needs: [tests, fmt_lint, test_wasm]
    if: ${{ always() }}
    steps:
      - name: Collect results on success
        run: echo "All checks passed"
""".lstrip()


@pytest.fixture
def build_workflow(tmp_path: Path) -> Path:
    """A CI workflow with three parallel jobs and an always-run aggregator."""
    path = tmp_path / ".github" / "workflows" / "rust.yaml"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(BUILD_WORKFLOW, encoding="utf-8")
    return path
