"""Environment-based API token resolution."""

from __future__ import annotations

import os

TOKEN_ENV_VARS = ("REPLICATE_API_TOKEN", "REPLICATE_API_KEY")


def get_api_token(cli_token: str | None = None) -> str | None:
    """Return the Replicate API token.

    A token passed on the command line wins over the environment.
    ``REPLICATE_API_TOKEN`` is the name Replicate's own clients use;
    ``REPLICATE_API_KEY`` is accepted for older setups.
    """
    if cli_token:
        return cli_token
    for name in TOKEN_ENV_VARS:
        value = os.environ.get(name)
        if value:
            return value
    return None
