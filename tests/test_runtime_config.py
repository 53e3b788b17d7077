from pathlib import Path

import pytest

import merlin_console.runtime_config as config_module
from merlin_console.message_bus import DEFAULT_PUBLISH_TIMEOUT, DEFAULT_QUEUE_SIZE
from merlin_console.runtime_config import (
    DATA_DIR_ENV,
    DEBUG_ENV,
    MODULES_DIR_ENV,
    RuntimeConfig,
    get_config_dir,
    get_data_dir,
    load_envs,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (DEBUG_ENV, DATA_DIR_ENV, MODULES_DIR_ENV):
        # setenv first so values written by load_envs are undone afterwards
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


def test_runtime_config_defaults(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))
    cfg = RuntimeConfig()
    assert cfg.debug is False
    assert cfg.verbose is False
    assert cfg.data_dir == tmp_path / "merlin_console"
    assert cfg.modules_dir == tmp_path / "merlin_console" / "modules"
    assert cfg.history_path == tmp_path / "merlin_console" / "history"
    assert cfg.log_path == tmp_path / "merlin_console" / "merlin-console.log"
    assert cfg.queue_size == DEFAULT_QUEUE_SIZE
    assert cfg.publish_timeout == DEFAULT_PUBLISH_TIMEOUT


def test_history_file_override(tmp_path: Path) -> None:
    cfg = RuntimeConfig(data_dir=tmp_path, history_file=tmp_path / "h.txt")
    assert cfg.history_path == tmp_path / "h.txt"


def test_runtime_config_is_frozen(tmp_path: Path) -> None:
    cfg = RuntimeConfig(data_dir=tmp_path)
    with pytest.raises(AttributeError):
        cfg.debug = True  # type: ignore[misc]


def test_data_dir_env_override(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv(DATA_DIR_ENV, str(tmp_path / "custom"))
    assert get_data_dir() == tmp_path / "custom"


def test_config_dir_follows_xdg(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    assert get_config_dir() == tmp_path / "merlin_console"


def test_load_envs_fills_unset_values(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text(
        f"{DEBUG_ENV}=true\n{DATA_DIR_ENV}=/from/dotenv\n{MODULES_DIR_ENV}=/mods\n"
    )
    monkeypatch.setenv(DATA_DIR_ENV, "/from/environment")

    load_envs(str(env_file))

    assert config_module.os.environ[DEBUG_ENV] == "true"
    assert config_module.os.environ[DATA_DIR_ENV] == "/from/environment"
    assert config_module.os.environ[MODULES_DIR_ENV] == "/mods"


def test_load_envs_reads_config_dir_dotenv(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    config_dir = get_config_dir()
    config_dir.mkdir()
    (config_dir / ".env").write_text(f"{MODULES_DIR_ENV}=/user/modules\n")

    load_envs()

    assert config_module.os.environ[MODULES_DIR_ENV] == "/user/modules"
