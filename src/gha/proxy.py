"""Run gh with the installation token in GH_TOKEN."""

import logging
import os
import shutil
import subprocess
import sys
from typing import Mapping, NoReturn, Sequence

from gha.errors import ExecutableNotFoundError, ForwardError, InvalidTokenError

log = logging.getLogger("gha.proxy")

GH_BINARY = "gh"
TOKEN_VAR = "GH_TOKEN"
# Ambient credentials gh would otherwise prefer over (or confuse with) ours.
DENIED_TOKEN_VARS = (
    "GH_TOKEN",
    "GITHUB_TOKEN",
    "GH_ENTERPRISE_TOKEN",
    "GITHUB_ENTERPRISE_TOKEN",
)


def validate_token(token: str) -> None:
    if not token or not token.strip():
        raise InvalidTokenError("token must not be empty")


def resolve_executable(name: str = GH_BINARY, search_path: str | None = None) -> str:
    path = shutil.which(name, path=search_path)
    if path is None:
        raise ExecutableNotFoundError(
            f"{name} CLI not found in PATH — install it from https://cli.github.com"
        )
    return path


def build_env(token: str, environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """Copy *environ* without any denied credential variable, then add GH_TOKEN.

    Names are compared case-insensitively (Windows environments are).
    Variables that only start with a denied name, such as GH_TOKEN_EXTRA,
    are kept.
    """
    environ = os.environ if environ is None else environ
    denied = {name.upper() for name in DENIED_TOKEN_VARS}
    env = {k: v for k, v in environ.items() if k.upper() not in denied}
    env[TOKEN_VAR] = token
    return env


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------
class ExecBackend:
    """Replace the current process image with the target (POSIX only).

    stdin/stdout/stderr and signals go straight to gh, and gh's exit status
    becomes ours. Does not return on success.
    """

    name = "exec"

    def run(self, path: str, args: Sequence[str], env: Mapping[str, str]) -> NoReturn:
        log.debug(f"exec {path} ({len(args)} arg(s))")
        # Buffered output would be lost with the old process image.
        sys.stdout.flush()
        sys.stderr.flush()
        try:
            os.execve(path, [path, *args], dict(env))
        except OSError as e:
            raise ForwardError(f"executing {path}: {e}") from e


class SpawnBackend:
    """Run the target as a child process with inherited stdio and wait for it."""

    name = "spawn"

    def run(self, path: str, args: Sequence[str], env: Mapping[str, str]) -> int:
        log.debug(f"spawn {path} ({len(args)} arg(s))")
        try:
            proc = subprocess.run([path, *args], env=dict(env))
        except OSError as e:
            raise ForwardError(f"starting {path}: {e}") from e
        except KeyboardInterrupt:
            # The child received the same SIGINT from the terminal.
            return 130
        if proc.returncode < 0:
            # Killed by signal; report it the way a shell would.
            return 128 - proc.returncode
        return proc.returncode


BACKENDS = {"exec": ExecBackend, "spawn": SpawnBackend}


def default_backend(environ: Mapping[str, str] | None = None):
    """Pick exec on POSIX, spawn elsewhere. GHA_FORWARD_MODE overrides."""
    environ = os.environ if environ is None else environ
    mode = environ.get("GHA_FORWARD_MODE", "").lower()
    if mode == "exec" and not hasattr(os, "execve"):
        log.warning("GHA_FORWARD_MODE=exec is not supported here, using spawn")
        mode = "spawn"
    if mode not in BACKENDS:
        if mode:
            log.warning(f"Unknown GHA_FORWARD_MODE {mode!r}, ignoring")
        mode = "exec" if os.name == "posix" else "spawn"
    return BACKENDS[mode]()


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------
def forward(args: Sequence[str], token: str, executable: str = GH_BINARY,
            backend=None, environ: Mapping[str, str] | None = None) -> int:
    """Run *executable* with *args* and the token; return its exit code.

    Nothing is launched unless the token is non-blank and the executable
    exists. With the exec backend this only returns by raising.
    """
    validate_token(token)
    environ = os.environ if environ is None else environ
    path = resolve_executable(executable, environ.get("PATH"))
    env = build_env(token, environ)
    backend = backend or default_backend(environ)
    return backend.run(path, list(args), env)


def run_capture(args: Sequence[str], token: str, executable: str = GH_BINARY,
                environ: Mapping[str, str] | None = None,
                timeout: float | None = None) -> subprocess.CompletedProcess:
    """Run the target as a child and capture combined stdout/stderr as text."""
    validate_token(token)
    environ = os.environ if environ is None else environ
    path = resolve_executable(executable, environ.get("PATH"))
    return subprocess.run(
        [path, *args], env=build_env(token, environ),
        stdout=subprocess.PIPE, stderr=subprocess.STDOUT,
        text=True, timeout=timeout,
    )
