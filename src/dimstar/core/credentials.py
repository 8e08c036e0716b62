"""Single API credential, persisted across restarts.

Credential file: ~/.dimstar/credentials.yaml
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_CREDENTIALS_PATH = Path.home() / ".dimstar" / "credentials.yaml"


class CredentialStore:
    """Get/set the inference API key."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else DEFAULT_CREDENTIALS_PATH

    def get(self) -> Optional[str]:
        if not self.path.exists():
            return None
        try:
            data = yaml.safe_load(self.path.read_text(encoding="utf-8-sig")) or {}
        except (OSError, yaml.YAMLError):
            return None
        if not isinstance(data, dict):
            return None
        key = data.get("api_key")
        return str(key) if key else None

    def set(self, api_key: str) -> Path:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            yaml.safe_dump({"api_key": api_key}, default_flow_style=False),
            encoding="utf-8",
        )
        try:
            os.chmod(self.path, 0o600)
        except OSError:
            pass  # not supported on every filesystem
        return self.path


def resolve_api_key(config: dict, store: Optional[CredentialStore] = None) -> Optional[str]:
    """Environment variable first, then the credential store."""
    env_var = config.get("ai", {}).get("api_key_env", "NVIDIA_API_KEY")
    from_env = os.environ.get(env_var)
    if from_env:
        return from_env
    if store is None:
        return None
    return store.get()
