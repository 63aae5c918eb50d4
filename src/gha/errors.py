"""Exception hierarchy shared by every stage of the credential pipeline."""


class GhaError(Exception):
    """Base class for failures reported to the operator with exit status 1."""


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------
class ConfigError(GhaError):
    """Raised when persisted configuration is missing a value or invalid."""


class ConfigNotFoundError(ConfigError):
    """Raised when no configuration file exists yet."""


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------
class CredentialError(GhaError):
    """Raised when the App private key cannot be used."""


class KeyReadError(CredentialError):
    """Raised when the key file is missing or unreadable."""


class KeyDecodeError(CredentialError):
    """Raised when no parseable PEM private key is found."""


class KeyFormatError(CredentialError):
    """Raised when the PEM data is not an RSA private key."""


class SigningError(CredentialError):
    """Raised when the JWT cannot be signed with the loaded key."""


# ---------------------------------------------------------------------------
# Installation resolution
# ---------------------------------------------------------------------------
def _format_choices(installations) -> str:
    return "\n".join(f"  {inst.id} ({inst.account_login})" for inst in installations)


class ResolutionError(GhaError):
    """Raised when no single installation can be chosen."""


class NoInstallationsError(ResolutionError):
    def __init__(self):
        super().__init__("no installations found for this GitHub App")


class AmbiguousInstallationError(ResolutionError):
    def __init__(self, installations):
        self.installations = list(installations)
        super().__init__(
            "multiple installations found — pass --installation-id or --org, "
            "or set installation_id with 'gha configure':\n"
            + _format_choices(self.installations)
        )


class InstallationNotFoundError(ResolutionError):
    def __init__(self, org: str, installations):
        self.org = org
        self.installations = list(installations)
        available = _format_choices(self.installations) or "  (none)"
        super().__init__(
            f"no installation found for org {org!r}, available:\n{available}"
        )


# ---------------------------------------------------------------------------
# GitHub API
# ---------------------------------------------------------------------------
class ApiError(GhaError):
    """Raised when a GitHub API call fails."""


class TransportError(ApiError):
    """Raised on network failure or an unusable response stream."""


class AuthorityError(ApiError):
    """Raised when GitHub answers with a non-success status."""

    def __init__(self, action: str, status: int, body: str):
        self.status = status
        self.body = body
        super().__init__(f"{action}: GitHub API error (HTTP {status}): {body}")


class MalformedResponseError(ApiError):
    """Raised when a success response does not have the expected shape."""


class EmptyTokenError(ApiError):
    """Raised when GitHub returns a token response without a token."""


# ---------------------------------------------------------------------------
# Forwarding
# ---------------------------------------------------------------------------
class ForwardError(GhaError):
    """Raised before launching gh when forwarding cannot proceed."""


class InvalidTokenError(ForwardError):
    """Raised when the installation token is empty or blank."""


class ExecutableNotFoundError(ForwardError):
    """Raised when the target executable is not on PATH."""
