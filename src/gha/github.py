"""GitHub REST calls made with the App JWT."""

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone

import requests

from gha import __version__
from gha.errors import (
    AuthorityError,
    EmptyTokenError,
    MalformedResponseError,
    TransportError,
)

log = logging.getLogger("gha.github")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
GH_API = "https://api.github.com"
API_VERSION = "2022-11-28"
DEFAULT_TIMEOUT = 30
MAX_RESPONSE_BYTES = 1 << 20


@dataclass
class ApiSettings:
    base_url: str = GH_API
    timeout: float = DEFAULT_TIMEOUT
    max_response_bytes: int = MAX_RESPONSE_BYTES

    @classmethod
    def from_env(cls, environ=None) -> "ApiSettings":
        """Read GHA_API_URL / GHA_HTTP_TIMEOUT / GHA_MAX_RESPONSE_BYTES.

        Unparseable numbers fall back to the defaults.
        """
        environ = os.environ if environ is None else environ
        settings = cls(base_url=environ.get("GHA_API_URL", "").rstrip("/") or GH_API)
        try:
            timeout = float(environ.get("GHA_HTTP_TIMEOUT", ""))
            if timeout > 0:
                settings.timeout = timeout
        except ValueError:
            pass
        try:
            limit = int(environ.get("GHA_MAX_RESPONSE_BYTES", ""))
            if limit > 0:
                settings.max_response_bytes = limit
        except ValueError:
            pass
        return settings


@dataclass(frozen=True)
class Installation:
    id: int
    account_login: str


@dataclass(frozen=True)
class InstallationToken:
    value: str = field(repr=False)
    expires_at: datetime


# ---------------------------------------------------------------------------
# Request helpers
# ---------------------------------------------------------------------------
def _headers(app_jwt: str) -> dict:
    return {
        "Authorization": f"Bearer {app_jwt}",
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": API_VERSION,
        "User-Agent": f"gha/{__version__}",
    }


def _read_body(resp, limit: int, action: str) -> bytes:
    """Read a streamed response body, refusing anything over *limit* bytes."""
    chunks: list[bytes] = []
    total = 0
    try:
        for chunk in resp.iter_content(chunk_size=8192):
            total += len(chunk)
            if total > limit:
                raise TransportError(
                    f"{action}: response exceeds {limit} bytes"
                )
            chunks.append(chunk)
    except requests.RequestException as e:
        raise TransportError(f"{action}: reading response: {e}") from e
    finally:
        resp.close()
    return b"".join(chunks)


def _request(method: str, url: str, app_jwt: str, settings: ApiSettings,
             action: str, params: dict | None = None):
    """Send one request; returns ``(response, body_bytes)``. Never retries."""
    try:
        resp = requests.request(
            method, url, headers=_headers(app_jwt), params=params,
            timeout=settings.timeout, stream=True,
        )
    except requests.RequestException as e:
        raise TransportError(f"{action}: {e}") from e
    body = _read_body(resp, settings.max_response_bytes, action)
    log.debug(f"{method} {url} -> HTTP {resp.status_code} ({len(body)} bytes)")
    return resp, body


def _decode_json(body: bytes, action: str):
    try:
        return json.loads(body)
    except ValueError as e:
        raise MalformedResponseError(f"{action}: invalid JSON response: {e}") from e


def _next_link(resp) -> str | None:
    link = resp.headers.get("Link", "")
    for part in link.split(","):
        if 'rel="next"' in part:
            return part.split(";")[0].strip().strip("<>")
    return None


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------
def list_installations(app_jwt: str, settings: ApiSettings | None = None) -> list[Installation]:
    """Return every installation of the App.

    Follows ``Link: rel="next"`` headers; ``per_page`` is only sent on the
    first request since later page URLs already carry their query string.
    """
    settings = settings or ApiSettings()
    action = "listing installations"
    url: str | None = f"{settings.base_url}/app/installations"
    params: dict | None = {"per_page": 100}
    installations: list[Installation] = []

    while url:
        resp, body = _request("GET", url, app_jwt, settings, action, params=params)
        if resp.status_code != 200:
            raise AuthorityError(action, resp.status_code, body.decode("utf-8", errors="replace"))
        data = _decode_json(body, action)
        if not isinstance(data, list):
            raise MalformedResponseError(f"{action}: expected a JSON array")
        try:
            installations.extend(
                Installation(id=int(item["id"]), account_login=item["account"]["login"])
                for item in data
            )
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedResponseError(f"{action}: unexpected entry: {e}") from e
        url = _next_link(resp)
        params = None

    log.debug(f"Found {len(installations)} installation(s)")
    return installations


def _parse_timestamp(value: str) -> datetime:
    # fromisoformat() only accepts a trailing "Z" from Python 3.11 on.
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def get_installation_token(app_jwt: str, installation_id: int,
                           settings: ApiSettings | None = None) -> InstallationToken:
    """Exchange the App JWT for an installation access token.

    The token is returned to the caller only; it is never logged or cached.
    """
    settings = settings or ApiSettings()
    action = "getting installation token"
    url = f"{settings.base_url}/app/installations/{installation_id}/access_tokens"

    resp, body = _request("POST", url, app_jwt, settings, action)
    if not 200 <= resp.status_code < 300:
        raise AuthorityError(action, resp.status_code, body.decode("utf-8", errors="replace"))

    data = _decode_json(body, action)
    if not isinstance(data, dict):
        raise MalformedResponseError(f"{action}: expected a JSON object")
    token = data.get("token") or ""
    if not isinstance(token, str) or not token.strip():
        raise EmptyTokenError(f"{action}: GitHub returned an empty token")
    try:
        expires_at = _parse_timestamp(data.get("expires_at") or "")
    except (TypeError, ValueError) as e:
        raise MalformedResponseError(
            f"{action}: invalid expires_at {data.get('expires_at')!r}"
        ) from e

    log.debug(f"Got token for installation {installation_id}, expires {expires_at.isoformat()}")
    return InstallationToken(value=token, expires_at=expires_at)
