"""Loading of dotenv-style secrets files (plain or SOPS-encrypted)."""

import os
import subprocess
from collections.abc import Iterable
from io import StringIO
from pathlib import Path

from dotenv import dotenv_values


def load_secrets(encrypted_path: str | Path) -> dict[str, str | None]:
    """Decrypt a SOPS-encrypted .env file and return its key-value pairs.

    Raises:
        FileNotFoundError: If the encrypted file does not exist.
        subprocess.CalledProcessError: If SOPS decryption fails.
    """
    path = Path(encrypted_path)
    if not path.exists():
        raise FileNotFoundError(f"Encrypted secrets file not found: {path}")

    result = subprocess.run(
        ["sops", "--decrypt", str(path)],
        capture_output=True,
        text=True,
        check=True,
    )
    return dict(dotenv_values(stream=StringIO(result.stdout)))


def load_dotenv_file(dotenv_path: str | Path) -> dict[str, str | None]:
    """Load a plain .env file. A missing file yields no values."""
    path = Path(dotenv_path)
    if not path.exists():
        return {}
    return dict(dotenv_values(path))


def with_env_overrides(
    values: dict[str, str | None], keys: Iterable[str]
) -> dict[str, str | None]:
    """Overlay process environment variables on file values for the given keys."""
    merged = dict(values)
    for key in keys:
        if key in os.environ:
            merged[key] = os.environ[key]
    return merged
