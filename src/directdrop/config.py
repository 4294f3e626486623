"""Configuration loading for the upload client."""

from __future__ import annotations

import json
import os
from pathlib import Path

import keyring

from directdrop.models import ClientConfig

SERVICE_NAME = "directdrop"
KEY_NAME = "upload_token"
TOKEN_ENV_VAR = "DIRECTDROP_UPLOAD_TOKEN"
BASE_URL_ENV_VAR = "DIRECTDROP_BASE_URL"

DEFAULT_CONFIG_PATH = Path("config/client_config.json")


def get_api_token() -> str:
    """Get the upload bearer token: system keyring first, then env var.

    Returns:
        Token string.

    Raises:
        RuntimeError: If no token is found anywhere, with set-up instructions.
    """
    token = keyring.get_password(SERVICE_NAME, KEY_NAME)
    if token:
        return token

    token = os.environ.get(TOKEN_ENV_VAR)
    if token:
        return token

    raise RuntimeError(
        "Upload token not found.\n"
        "Set it with: directdrop config set-token YOUR_TOKEN\n"
        f"Or: export {TOKEN_ENV_VAR}=your-token"
    )


def set_api_token(token: str) -> None:
    keyring.set_password(SERVICE_NAME, KEY_NAME, token)


def load_client_config(config_path: Path | None = None) -> ClientConfig:
    """Load client configuration from JSON, falling back to defaults.

    Reads ``config/client_config.json`` when *config_path* is ``None``.
    Unknown keys are ignored.  ``DIRECTDROP_BASE_URL`` overrides the base
    URL, and the token is read from the system keyring when the file does
    not carry one.

    Args:
        config_path: Optional explicit path to the JSON file.

    Returns:
        ClientConfig populated from file, environment and keyring.
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    data: dict = {}
    if config_path.exists():
        with open(config_path) as f:
            data = json.load(f)

    field_names = {f.name for f in ClientConfig.__dataclass_fields__.values()}
    kwargs = {k: v for k, v in data.items() if k in field_names}

    env_base_url = os.environ.get(BASE_URL_ENV_VAR)
    if env_base_url:
        kwargs["base_url"] = env_base_url

    config = ClientConfig(**kwargs)
    if config.concurrency < 1:
        raise ValueError(f"concurrency must be >= 1, got {config.concurrency}")

    if config.api_token is None:
        config.api_token = keyring.get_password(SERVICE_NAME, KEY_NAME)

    return config
