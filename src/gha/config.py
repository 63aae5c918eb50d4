"""Persisted GitHub App credentials (``config.env`` under the config dir)."""

import os
from dataclasses import dataclass
from pathlib import Path

from gha.errors import ConfigError, ConfigNotFoundError

CONFIG_DIR_NAME = "github-app-cli"
CONFIG_FILE = "config.env"

# File key -> Config attribute
KEYS = {
    "APP_ID": "app_id",
    "INSTALLATION_ID": "installation_id",
    "PRIVATE_KEY_PATH": "private_key_path",
}


@dataclass
class Config:
    app_id: int
    installation_id: int = 0  # 0 = auto-detect
    private_key_path: str = ""


def config_dir(environ=None) -> Path:
    """Return the config directory, respecting XDG_CONFIG_HOME."""
    environ = os.environ if environ is None else environ
    xdg = environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / CONFIG_DIR_NAME
    try:
        home = Path.home()
    except RuntimeError as e:
        raise ConfigError(f"cannot determine home directory: {e}") from e
    return home / ".config" / CONFIG_DIR_NAME


def config_path(environ=None) -> Path:
    return config_dir(environ) / CONFIG_FILE


def _read_env(path: Path) -> dict[str, str]:
    """Parse KEY=value lines; comments and blanks skipped, quotes stripped."""
    values: dict[str, str] = {}
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            raise ConfigError(f"parsing config: malformed line {line!r}")
        key, _, value = line.partition("=")
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
            value = value[1:-1]
        values[key.strip()] = value
    return values


def _parse_int(values: dict[str, str], key: str, default: int | None = None) -> int:
    raw = values.get(key, "")
    if not raw:
        if default is None:
            raise ConfigError(f"{key.lower()} is required in config")
        return default
    try:
        return int(raw, 10)
    except ValueError:
        raise ConfigError(f"{key.lower()} must be an integer, got {raw!r}") from None


def load(environ=None) -> Config:
    """Load and validate the config file."""
    path = config_path(environ)
    try:
        values = _read_env(path)
    except FileNotFoundError:
        raise ConfigNotFoundError(
            "configuration not found — run 'gha configure' first"
        ) from None
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"reading config: {e}") from e

    unknown = sorted(set(values) - set(KEYS))
    if unknown:
        raise ConfigError(f"parsing config: unknown key(s): {', '.join(unknown)}")

    app_id = _parse_int(values, "APP_ID")
    installation_id = _parse_int(values, "INSTALLATION_ID", default=0)
    key_path = values.get("PRIVATE_KEY_PATH", "").strip()

    if app_id <= 0:
        raise ConfigError("app_id must be a positive integer")
    if installation_id < 0:
        raise ConfigError("installation_id must not be negative")
    if not key_path:
        raise ConfigError("private_key_path is required in config")

    return Config(
        app_id=app_id,
        installation_id=installation_id,
        private_key_path=os.path.normpath(key_path),
    )


def save(cfg: Config, environ=None) -> Path:
    """Write *cfg* with 0700 directory and 0600 file permissions."""
    if cfg is None:
        raise ConfigError("config must not be None")

    directory = config_dir(environ)
    path = directory / CONFIG_FILE
    lines = [
        "# Written by 'gha configure'",
        f"APP_ID={cfg.app_id}",
        f"INSTALLATION_ID={cfg.installation_id}",
        f"PRIVATE_KEY_PATH={cfg.private_key_path}",
    ]
    try:
        directory.mkdir(mode=0o700, parents=True, exist_ok=True)
        # mkdir's mode is ignored for existing dirs and masked by umask.
        directory.chmod(0o700)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            f.write("\n".join(lines) + "\n")
        path.chmod(0o600)
    except OSError as e:
        raise ConfigError(f"writing config: {e}") from e
    return path
