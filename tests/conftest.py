"""Pytest configuration ensuring local packages are importable."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from browser_harness.config import HarnessConfig  # noqa: E402

from fakes import FakeBrowser  # noqa: E402


@pytest.fixture
def config(tmp_path: Path) -> HarnessConfig:
    """Short timeouts so failing polls finish quickly."""

    return HarnessConfig(
        base_url="https://demo.test",
        action_timeout_ms=200,
        navigation_timeout_ms=500,
        assertion_timeout_ms=300,
        popup_timeout_ms=300,
        dialog_timeout_ms=300,
        scenario_timeout_ms=5000,
        poll_interval_ms=10,
        log_root=tmp_path / "runs",
    )


@pytest.fixture
def browser() -> FakeBrowser:
    return FakeBrowser()
