import stat
import textwrap
from dataclasses import dataclass
from pathlib import Path

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa


@pytest.fixture(scope="session")
def rsa_key():
    """One 2048-bit RSA key shared by the whole session (generation is slow)."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def _write_key(path: Path, key, fmt) -> Path:
    path.write_bytes(key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=fmt,
        encryption_algorithm=serialization.NoEncryption(),
    ))
    return path


@pytest.fixture()
def rsa_key_pair(tmp_path, rsa_key):
    """Legacy PKCS#1 (``BEGIN RSA PRIVATE KEY``) key file."""
    return _write_key(tmp_path / "test-key.pem", rsa_key,
                      serialization.PrivateFormat.TraditionalOpenSSL)


@pytest.fixture()
def pkcs8_key_pair(tmp_path, rsa_key):
    """Modern PKCS#8 (``BEGIN PRIVATE KEY``) key file."""
    return _write_key(tmp_path / "test-key-pkcs8.pem", rsa_key,
                      serialization.PrivateFormat.PKCS8)


@dataclass
class FakeGh:
    bin_dir: Path
    record_dir: Path

    def args(self) -> list[str]:
        raw = (self.record_dir / "args").read_bytes()
        return [a.decode() for a in raw.split(b"\0")[:-1]]

    def token(self) -> str:
        return (self.record_dir / "token").read_text()

    def github_token(self) -> str:
        return (self.record_dir / "github_token").read_text()

    def ran(self) -> bool:
        return (self.record_dir / "args").exists()


@pytest.fixture()
def fake_gh(tmp_path):
    """Factory writing a ``gh`` shell script that records what it received.

    Arguments are stored NUL-separated so spaces and newlines survive.
    """
    def make(exit_code: int = 0, extra: str = "") -> FakeGh:
        bin_dir = tmp_path / "bin"
        record_dir = tmp_path / "record"
        bin_dir.mkdir(exist_ok=True)
        record_dir.mkdir(exist_ok=True)
        script = bin_dir / "gh"
        script.write_text(textwrap.dedent(f"""\
            #!/bin/sh
            : > "{record_dir}/args"
            for a in "$@"; do printf '%s\\0' "$a" >> "{record_dir}/args"; done
            printf '%s' "$GH_TOKEN" > "{record_dir}/token"
            printf '%s' "${{GITHUB_TOKEN-unset}}" > "{record_dir}/github_token"
            {extra}
            exit {exit_code}
        """))
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return FakeGh(bin_dir=bin_dir, record_dir=record_dir)

    return make
