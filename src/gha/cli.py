#!/usr/bin/env python3
"""gha command line: configure credentials or proxy a gh command.

Exit codes:
    0 — success (or informational output)
    1 — any gha failure; the message goes to stderr
    n — otherwise the exit code of the forwarded gh command
"""

import logging
import os
import sys
from pathlib import Path

from gha import __version__, auth, config, github, proxy, update
from gha.errors import ConfigError, GhaError
from gha.log import setup_logging
from gha.resolve import override_from_env, parse_installation_flags, resolve_installation

log = logging.getLogger("gha")

USAGE = """\
gha - proxy gh commands with GitHub App authentication

Usage:
  gha configure                          Set up GitHub App credentials
  gha [flags] <gh subcommand>            Proxy any gh command with App token
  gha --version                          Show version
  gha --help                             Show this help

Flags:
  --installation-id <id>    Use specific installation (overrides config & env)
  --org <name>              Resolve installation by org/user name

Environment Variables:
  GHA_INSTALLATION_ID       Installation ID (overrides config, overridden by flags)
  GHA_ORG                   Org/user name to resolve (overrides config, overridden by flags)
  GHA_API_URL               GitHub API base URL (GitHub Enterprise Server)
  GHA_FORWARD_MODE          exec or spawn (default: exec where supported)
  GHA_DEBUG                 Log each step to stderr
  GHA_NO_UPDATE_CHECK       Skip the daily new-version check

Resolution Order (highest to lowest precedence):
  1. --installation-id / --org flag
  2. GHA_INSTALLATION_ID / GHA_ORG environment variable
  3. INSTALLATION_ID in config.env
  4. Auto-detect (works only with single installation)

Examples:
  gha configure
  gha pr list
  gha --org myorg repo list
  gha --installation-id 12345 issue create --title "Bug"
  GHA_ORG=myorg gha pr list

Configuration is stored in ~/.config/github-app-cli/config.env
"""


# ---------------------------------------------------------------------------
# configure
# ---------------------------------------------------------------------------
def _prompt(stdin, stderr, msg: str) -> str:
    stderr.write(msg)
    stderr.flush()
    line = stdin.readline()
    if not line:
        raise ConfigError("unexpected end of input")
    return line.strip()


def _parse_positive(raw: str, label: str) -> int:
    try:
        value = int(raw, 10)
    except ValueError:
        value = 0
    if value <= 0:
        raise ConfigError(f"invalid {label} {raw!r}: must be a positive integer")
    return value


def run_configure(stdin, stderr, environ) -> None:
    app_id = _parse_positive(_prompt(stdin, stderr, "GitHub App ID: "), "App ID")

    raw = _prompt(stdin, stderr, "Installation ID (empty to auto-detect): ")
    installation_id = _parse_positive(raw, "Installation ID") if raw else 0

    key_path = _prompt(stdin, stderr, "Private Key Path: ")
    if not key_path:
        raise ConfigError("private key path must not be empty")
    path = Path(key_path).expanduser()
    if not path.exists():
        raise ConfigError(f"private key file: {path} does not exist")
    if not path.is_file():
        raise ConfigError(f"private key path is not a regular file: {path}")

    saved = config.save(
        config.Config(app_id=app_id, installation_id=installation_id,
                      private_key_path=str(path.resolve())),
        environ,
    )
    stderr.write(f"Configuration saved to {saved}\n")


# ---------------------------------------------------------------------------
# proxy
# ---------------------------------------------------------------------------
def check_for_update(stderr, environ) -> None:
    try:
        cache_dir = config.config_dir(environ)
    except ConfigError:
        return
    result = update.check(__version__, cache_dir, environ=environ)
    if result is not None:
        stderr.write(update.format_notice(result))


def run_proxy(args: list[str], environ) -> int:
    """Mint an installation token and hand it to gh. Returns gh's exit code."""
    flag_override, gh_args = parse_installation_flags(args)
    env_override = override_from_env(environ)

    cfg = config.load(environ)
    app_jwt = auth.jwt_from_file(cfg.app_id, cfg.private_key_path)
    settings = github.ApiSettings.from_env(environ)

    installation_id = resolve_installation(
        flag_override, env_override, cfg.installation_id,
        lambda: github.list_installations(app_jwt, settings),
    )
    token = github.get_installation_token(app_jwt, installation_id, settings)
    log.debug(f"Forwarding to gh as installation {installation_id}")
    return proxy.forward(gh_args, token.value, environ=environ)


def run(argv: list[str], stdin=None, stdout=None, stderr=None, environ=None) -> int:
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    stderr = stderr or sys.stderr
    environ = os.environ if environ is None else environ
    setup_logging(stderr, environ)

    if len(argv) < 2:
        stdout.write(USAGE)
        return 1

    command = argv[1]
    if command in ("--version", "-v"):
        stdout.write(f"gha {__version__}\n")
        return 0
    if command in ("--help", "-h"):
        stdout.write(USAGE)
        return 0

    try:
        if command == "configure":
            run_configure(stdin, stderr, environ)
            return 0
        check_for_update(stderr, environ)
        return run_proxy(argv[1:], environ)
    except GhaError as e:
        stderr.write(f"ERROR: {e}\n")
        return 1


def main():
    sys.exit(run(sys.argv))


if __name__ == "__main__":
    main()
