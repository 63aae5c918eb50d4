"""Once-a-day check for a newer gha release.

Best effort: every failure is logged at debug level and treated as
"no update", so the proxy is never blocked by it.
"""

import json
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path

import requests

log = logging.getLogger("gha.update")

RELEASE_URL = "https://api.github.com/repos/haribote-lab/github-app-cli/releases/latest"
RELEASES_PAGE = "https://github.com/haribote-lab/github-app-cli/releases"
CACHE_FILE = "update-check.json"
CHECK_INTERVAL = 24 * 60 * 60
HTTP_TIMEOUT = 3
MAX_RESPONSE = 1 << 20


@dataclass
class Result:
    latest: str
    current: str


def _part(parts: list[str], i: int) -> int:
    if i >= len(parts):
        return 0
    try:
        return int(parts[i])
    except ValueError:
        return 0


def is_newer(latest: str, current: str) -> bool:
    """Compare major.minor.patch numerically; a leading ``v`` is ignored."""
    l_parts = latest.removeprefix("v").split(".")
    c_parts = current.removeprefix("v").split(".")
    for i in range(3):
        lv, cv = _part(l_parts, i), _part(c_parts, i)
        if lv != cv:
            return lv > cv
    return False


def _read_cache(path: Path) -> dict | None:
    try:
        data = json.loads(path.read_text())
    except (OSError, ValueError):
        return None
    if not isinstance(data, dict):
        return None
    return data


def _write_cache(path: Path, latest: str) -> None:
    try:
        path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        path.write_text(json.dumps({"latest_version": latest, "checked_at": time.time()}))
        path.chmod(0o600)
    except OSError as e:
        log.debug(f"Could not write update cache: {e}")


def _read_capped(resp) -> bytes:
    """Read at most MAX_RESPONSE bytes; larger bodies count as a failed check.

    iter_content() turns urllib3 read errors into requests exceptions.
    """
    chunks: list[bytes] = []
    total = 0
    for chunk in resp.iter_content(chunk_size=8192):
        total += len(chunk)
        if total > MAX_RESPONSE:
            raise ValueError(f"release response exceeds {MAX_RESPONSE} bytes")
        chunks.append(chunk)
    return b"".join(chunks)


def fetch_latest_version(url: str = RELEASE_URL) -> str:
    """Return the latest release tag without its ``v`` prefix, or ""."""
    try:
        resp = requests.get(url, timeout=HTTP_TIMEOUT, stream=True,
                            headers={"Accept": "application/vnd.github+json"})
        try:
            if resp.status_code != 200:
                log.debug(f"Update check got HTTP {resp.status_code}")
                return ""
            body = _read_capped(resp)
        finally:
            resp.close()
        tag = json.loads(body).get("tag_name", "")
    except (requests.RequestException, ValueError, AttributeError) as e:
        log.debug(f"Update check failed: {e}")
        return ""
    return tag.removeprefix("v") if isinstance(tag, str) else ""


def check(current_version: str, cache_dir: Path, url: str = RELEASE_URL,
          environ=None) -> Result | None:
    """Return a Result if a newer release exists, using a 24h cache."""
    environ = os.environ if environ is None else environ
    if not current_version or current_version == "dev":
        return None
    if environ.get("GHA_NO_UPDATE_CHECK"):
        return None

    cache_path = Path(cache_dir) / CACHE_FILE
    cached = _read_cache(cache_path)
    if cached is not None:
        checked_at = cached.get("checked_at")
        latest = cached.get("latest_version")
        if (isinstance(checked_at, (int, float)) and isinstance(latest, str)
                and time.time() - checked_at < CHECK_INTERVAL):
            return Result(latest, current_version) if is_newer(latest, current_version) else None

    latest = fetch_latest_version(url)
    if not latest:
        return None
    _write_cache(cache_path, latest)

    if is_newer(latest, current_version):
        return Result(latest, current_version)
    return None


def format_notice(result: Result) -> str:
    return (
        f"A new version of gha is available: v{result.current} -> v{result.latest}\n"
        f"Run `pip install -U github-app-cli` or visit {RELEASES_PAGE}\n"
    )
