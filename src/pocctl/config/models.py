"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, pocctl.toml only contains overrides.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

DEFAULT_TARGET = "http://127.0.0.1:8080"


# --- pocctl.toml sections ---


class HttpConfig(BaseModel):
    """[http] section — outbound request behaviour."""

    model_config = {"frozen": True}

    timeout: float = Field(default=5.0, gt=0)
    follow_redirects: bool = True
    verify_tls: bool = True


class RunnerConfig(BaseModel):
    """[runner] section."""

    model_config = {"frozen": True}

    target: str = DEFAULT_TARGET
