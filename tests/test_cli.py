import json
from pathlib import Path

import pytest

from browser_harness import cli
from browser_harness.runner import ScenarioRunner

from fakes import FakeBrowser


def _write_plan(tmp_path: Path, *, expected: str = "New Window") -> Path:
    plan = tmp_path / "plan.json"
    plan.write_text(
        json.dumps(
            {
                "scenarios": [
                    {
                        "name": "windows",
                        "tags": ["popups"],
                        "steps": [
                            {"type": "navigate", "url": "/windows"},
                            {"type": "expect_popup", "name": "child"},
                            {"type": "click", "target": 'role=link[name="Click Here"]'},
                            {"type": "wait_for_popup", "name": "child"},
                            {"type": "assert", "target": "h3", "session": "child", "predicate": "equals", "value": expected},
                        ],
                    },
                    {
                        "name": "checkboxes",
                        "tags": ["forms"],
                        "steps": [
                            {"type": "navigate", "url": "/checkboxes"},
                            {"type": "check", "target": {"selector": 'input[type="checkbox"]', "index": 0}},
                        ],
                    },
                ]
            }
        ),
        encoding="utf-8",
    )
    return plan


class FakeBrowserRunner(ScenarioRunner):
    def __init__(self, config, *, run_id=None) -> None:
        super().__init__(config, run_id=run_id, browser=FakeBrowser())


def test_list_prints_selected_scenarios(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    plan = _write_plan(tmp_path)

    assert cli.main(["list", "--plan", str(plan)]) == 0
    assert capsys.readouterr().out.splitlines() == ["windows [popups]", "checkboxes [forms]"]

    assert cli.main(["list", "--plan", str(plan), "--tag", "forms", "--json"]) == 0
    listed = json.loads(capsys.readouterr().out)
    assert [item["name"] for item in listed] == ["checkboxes"]


def test_run_reports_success_and_failure(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli, "ScenarioRunner", FakeBrowserRunner)
    (tmp_path / "harness.toml").write_text(
        "[harness]\nassertion_timeout_ms = 200\npoll_interval_ms = 10\npopup_timeout_ms = 300\n",
        encoding="utf-8",
    )
    good = _write_plan(tmp_path)
    args = ["--base-url", "https://demo.test", "--log-root", str(tmp_path / "runs")]

    assert cli.main(["run", "--plan", str(good), "--run-id", "ok", "--json", *args]) == 0
    report = json.loads(capsys.readouterr().out)
    assert report["success"] is True
    assert report["totals"] == {"total": 2, "passed": 2, "failed": 0}
    assert (tmp_path / "runs" / "ok" / "report.json").exists()

    bad_dir = tmp_path / "bad"
    bad_dir.mkdir()
    bad = _write_plan(bad_dir, expected="Old Window")
    assert cli.main(["run", "--plan", str(bad), "--scenario", "windows", "--run-id", "bad", *args]) == 1
    output = capsys.readouterr().out
    assert "[FAIL] windows" in output
    assert "0/1 passed" in output


def test_usage_errors_exit_with_code_2(tmp_path: Path) -> None:
    plan = _write_plan(tmp_path)
    broken = tmp_path / "broken.json"
    broken.write_text("[", encoding="utf-8")

    for argv in (
        ["run"],
        ["list", "--plan", str(broken)],
        ["list", "--plan", str(plan), "--scenario", "missing"],
        ["run", "--plan", str(plan), "--browser", "lynx"],
    ):
        with pytest.raises(SystemExit) as excinfo:
            cli.main(argv)
        assert excinfo.value.code == 2
