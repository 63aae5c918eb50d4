"""Choose which installation to act as.

Precedence, highest first:

  1. --installation-id flag
  2. --org flag
  3. GHA_INSTALLATION_ID environment variable
  4. GHA_ORG environment variable
  5. installation id in the config file
  6. auto-detect (only when the App has exactly one installation)

Each step is a zero-argument lookup returning an id or None; the first
non-None result wins. The installation listing is fetched lazily, so steps
1, 3 and 5 never touch the network.
"""

import logging
import os
from dataclasses import dataclass
from typing import Callable, Iterable, Mapping, Sequence

from gha.errors import (
    AmbiguousInstallationError,
    InstallationNotFoundError,
    NoInstallationsError,
)
from gha.github import Installation

log = logging.getLogger("gha.resolve")

ENV_INSTALLATION_ID = "GHA_INSTALLATION_ID"
ENV_ORG = "GHA_ORG"

Lookup = Callable[[], "int | None"]


@dataclass(frozen=True)
class InstallationOverride:
    id: int | None = None
    org: str | None = None


# ---------------------------------------------------------------------------
# Raw input parsing
# ---------------------------------------------------------------------------
def parse_installation_id(raw: str | None) -> int | None:
    """Parse a positive integer id; anything else counts as absent.

    Only plain ASCII digits are accepted: no sign, whitespace or underscores.
    """
    if raw is None or not (raw.isascii() and raw.isdecimal()):
        return None
    value = int(raw)
    return value if value > 0 else None


def parse_installation_flags(args: Sequence[str]) -> tuple[InstallationOverride, list[str]]:
    """Strip --installation-id / --org from *args*.

    Returns the override and the remaining arguments in their original order.
    A flag given as the last argument with no value is left in place.
    """
    inst_id: int | None = None
    org: str | None = None
    remaining: list[str] = []

    i = 0
    while i < len(args):
        arg = args[i]
        if arg == "--installation-id" and i + 1 < len(args):
            inst_id = parse_installation_id(args[i + 1]) or inst_id
            i += 2
            continue
        if arg.startswith("--installation-id="):
            inst_id = parse_installation_id(arg.partition("=")[2]) or inst_id
        elif arg == "--org" and i + 1 < len(args):
            org = args[i + 1] or org
            i += 2
            continue
        elif arg.startswith("--org="):
            org = arg.partition("=")[2] or org
        else:
            remaining.append(arg)
        i += 1

    return InstallationOverride(id=inst_id, org=org), remaining


def override_from_env(environ: Mapping[str, str] | None = None) -> InstallationOverride:
    environ = os.environ if environ is None else environ
    return InstallationOverride(
        id=parse_installation_id(environ.get(ENV_INSTALLATION_ID) or None),
        org=environ.get(ENV_ORG) or None,
    )


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------
def find_by_org(installations: Iterable[Installation], org: str) -> int:
    """Case-insensitive exact match on the account login."""
    installations = list(installations)
    wanted = org.casefold()
    for inst in installations:
        if inst.account_login.casefold() == wanted:
            return inst.id
    raise InstallationNotFoundError(org, installations)


def auto_detect(installations: Iterable[Installation]) -> int:
    installations = list(installations)
    if not installations:
        raise NoInstallationsError()
    if len(installations) > 1:
        raise AmbiguousInstallationError(installations)
    return installations[0].id


def first_present(lookups: Iterable[Lookup]) -> int | None:
    for lookup in lookups:
        value = lookup()
        if value is not None:
            return value
    return None


def precedence_chain(
    flag: InstallationOverride,
    env: InstallationOverride,
    config_id: int,
    list_installations: Callable[[], list[Installation]],
) -> list[Lookup]:
    """Build the ordered lookups. Org lookups call *list_installations*."""
    cache: list[list[Installation]] = []

    def installations() -> list[Installation]:
        if not cache:
            cache.append(list_installations())
        return cache[0]

    def by_id(override: InstallationOverride, source: str) -> Lookup:
        def lookup():
            if override.id is not None:
                log.debug(f"Using installation {override.id} from {source}")
            return override.id
        return lookup

    def by_org(override: InstallationOverride, source: str) -> Lookup:
        def lookup():
            if not override.org:
                return None
            log.debug(f"Resolving org {override.org!r} from {source}")
            return find_by_org(installations(), override.org)
        return lookup

    def from_config():
        if config_id > 0:
            log.debug(f"Using installation {config_id} from config")
            return config_id
        return None

    def detect():
        log.debug("Auto-detecting installation")
        return auto_detect(installations())

    return [
        by_id(flag, "--installation-id"),
        by_org(flag, "--org"),
        by_id(env, ENV_INSTALLATION_ID),
        by_org(env, ENV_ORG),
        from_config,
        detect,
    ]


def resolve_installation(
    flag: InstallationOverride,
    env: InstallationOverride,
    config_id: int,
    list_installations: Callable[[], list[Installation]],
) -> int:
    """Return the installation id to exchange the JWT against.

    A wrong config id is not checked here; the token exchange rejects it.
    """
    # detect() always returns or raises, so the chain never comes back empty.
    return first_present(precedence_chain(flag, env, config_id, list_installations))
