from pathlib import Path

from keyflow.config import Settings, load_settings


def test_defaults_without_environment():
    settings = load_settings({})
    assert settings == Settings()
    assert settings.path_dir == Path("path")
    assert settings.timeout == 10
    assert settings.settle_ms == 500
    assert settings.debug is False
    assert settings.headless is True
    assert settings.run_dir is None


def test_environment_overrides(tmp_path):
    settings = load_settings(
        {
            "KEYFLOW_PATH": str(tmp_path),
            "KEYFLOW_DEBUG": "TRUE",
            "KEYFLOW_TIMEOUT": "2.5",
            "KEYFLOW_SPEED": "0",
            "KEYFLOW_POLL_MS": "50",
            "KEYFLOW_BROWSER": "firefox",
            "KEYFLOW_HEADLESS": "off",
            "KEYFLOW_PROXY": "http://proxy:3128",
            "RUN_DIR": str(tmp_path / "run"),
        }
    )
    assert settings.path_dir == tmp_path
    assert settings.debug is True
    assert settings.timeout == 2.5
    assert settings.settle_ms == 0
    assert settings.poll_ms == 50
    assert settings.browser == "firefox"
    assert settings.headless is False
    assert settings.proxy == "http://proxy:3128"
    assert settings.run_dir == tmp_path / "run"


def test_malformed_numbers_fall_back():
    settings = load_settings({"KEYFLOW_TIMEOUT": "soon", "KEYFLOW_SPEED": "fast"})
    assert settings.timeout == 10
    assert settings.settle_ms == 500


def test_keyflow_run_dir_wins(tmp_path):
    settings = load_settings({"KEYFLOW_RUN_DIR": str(tmp_path / "a"), "RUN_DIR": "b"})
    assert settings.run_dir == tmp_path / "a"
