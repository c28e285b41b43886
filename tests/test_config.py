from pathlib import Path

import pytest

from browser_harness.config import DEFAULTS, HarnessConfig, load_config


def test_defaults_without_file_or_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    config = load_config(environ={})

    assert config.browser == "chromium"
    assert config.headless is True
    assert config.action_timeout_ms == DEFAULTS["action_timeout_ms"]
    assert config.log_root == Path("runs")
    assert config.upload_allow_list == ()


def test_environment_overrides_file(tmp_path: Path) -> None:
    config_file = tmp_path / "harness.toml"
    config_file.write_text(
        "[harness]\n"
        'browser = "firefox"\n'
        'base_url = "https://file.test"\n'
        "workers = 3\n"
        'upload_allow_list = ["TXT", ".png"]\n',
        encoding="utf-8",
    )

    config = load_config(
        config_file,
        environ={"HARNESS_BASE_URL": "https://env.test", "HARNESS_HEADLESS": "off", "OTHER": "x"},
    )

    assert config.browser == "firefox"
    assert config.base_url == "https://env.test"
    assert config.workers == 3
    assert config.headless is False
    assert config.upload_allow_list == (".txt", ".png")


def test_missing_explicit_config_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.toml", environ={})


def test_rejects_unknown_browser_and_bad_workers() -> None:
    with pytest.raises(ValueError):
        HarnessConfig(browser="netscape")
    with pytest.raises(ValueError):
        HarnessConfig.from_mapping({"workers": "0"})


def test_with_overrides_ignores_none() -> None:
    config = HarnessConfig(base_url="https://a.test")

    updated = config.with_overrides(base_url=None, workers=4, upload_allow_list="csv, json")

    assert updated.base_url == "https://a.test"
    assert updated.workers == 4
    assert updated.upload_allow_list == (".csv", ".json")
    assert config.workers == 1
