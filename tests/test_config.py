"""Tests for persisted credentials."""

import os
import stat
from pathlib import Path

import pytest

from gha.config import CONFIG_FILE, Config, config_dir, load, save
from gha.errors import ConfigError, ConfigNotFoundError


@pytest.fixture()
def environ(tmp_path):
    return {"XDG_CONFIG_HOME": str(tmp_path / "xdg")}


def _write(environ, content: str) -> Path:
    directory = config_dir(environ)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / CONFIG_FILE
    path.write_text(content)
    return path


class TestConfigDir:
    def test_xdg_config_home(self, tmp_path):
        assert config_dir({"XDG_CONFIG_HOME": str(tmp_path)}) == tmp_path / "github-app-cli"

    def test_home_fallback(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        assert config_dir({}) == tmp_path / ".config" / "github-app-cli"


class TestSaveAndLoad:
    def test_round_trip(self, environ):
        cfg = Config(app_id=12345, installation_id=67890, private_key_path="/keys/app.pem")
        save(cfg, environ)
        assert load(environ) == cfg

    def test_zero_installation_means_auto_detect(self, environ):
        save(Config(app_id=1, private_key_path="/k.pem"), environ)
        assert load(environ).installation_id == 0

    @pytest.mark.skipif(os.name != "posix", reason="POSIX permissions")
    def test_permissions(self, environ):
        path = save(Config(app_id=1, private_key_path="/k.pem"), environ)
        assert stat.S_IMODE(path.stat().st_mode) == 0o600
        assert stat.S_IMODE(path.parent.stat().st_mode) == 0o700

    @pytest.mark.skipif(os.name != "posix", reason="POSIX permissions")
    def test_fixes_existing_permissions(self, environ):
        path = _write(environ, "APP_ID=1\n")
        path.chmod(0o644)
        path.parent.chmod(0o755)

        save(Config(app_id=2, private_key_path="/k.pem"), environ)

        assert stat.S_IMODE(path.stat().st_mode) == 0o600
        assert stat.S_IMODE(path.parent.stat().st_mode) == 0o700

    def test_save_none_rejected(self, environ):
        with pytest.raises(ConfigError):
            save(None, environ)


class TestLoadValidation:
    def test_not_found(self, environ):
        with pytest.raises(ConfigNotFoundError, match="gha configure"):
            load(environ)

    def test_comments_blanks_and_quotes(self, environ):
        _write(environ, '# comment\n\nAPP_ID=7\nPRIVATE_KEY_PATH="/path/with space.pem"\n')
        cfg = load(environ)
        assert cfg.app_id == 7
        assert cfg.installation_id == 0
        assert cfg.private_key_path == "/path/with space.pem"

    def test_normalizes_key_path(self, environ):
        _write(environ, "APP_ID=7\nPRIVATE_KEY_PATH=  /a/b/../c.pem  \n")
        assert load(environ).private_key_path == os.path.normpath("/a/c.pem")

    @pytest.mark.parametrize("content,match", [
        ("APP_ID=0\nPRIVATE_KEY_PATH=/k.pem\n", "app_id must be a positive"),
        ("APP_ID=-1\nPRIVATE_KEY_PATH=/k.pem\n", "app_id must be a positive"),
        ("APP_ID=abc\nPRIVATE_KEY_PATH=/k.pem\n", "app_id must be an integer"),
        ("PRIVATE_KEY_PATH=/k.pem\n", "app_id is required"),
        ("APP_ID=1\nINSTALLATION_ID=-2\nPRIVATE_KEY_PATH=/k.pem\n", "must not be negative"),
        ("APP_ID=1\nPRIVATE_KEY_PATH=   \n", "private_key_path is required"),
        ("APP_ID=1\n", "private_key_path is required"),
        ("APP_ID=1\nPRIVATE_KEY_PATH=/k.pem\nCOLOR=blue\n", "unknown key"),
        ("APP_ID 1\n", "malformed line"),
    ])
    def test_invalid(self, environ, content, match):
        _write(environ, content)
        with pytest.raises(ConfigError, match=match):
            load(environ)

    def test_non_utf8_file(self, environ):
        path = _write(environ, "")
        path.write_bytes(b"APP_ID=\xff\xfe\nPRIVATE_KEY_PATH=/k.pem\n")
        with pytest.raises(ConfigError, match="reading config"):
            load(environ)
