"""
Engine constants and service settings.
"""
from __future__ import annotations

import os
from functools import lru_cache
from typing import List

from pydantic import BaseModel, Field


# ─── Constants ───────────────────────────────────────────────────────────────

BROADCAST_MAC = "FF:FF:FF:FF:FF:FF"
BROADCAST_IP = "255.255.255.255"

MIN_FRAME_SIZE = 64  # Minimum Ethernet frame size in bytes
DEFAULT_TTL = 64

EPHEMERAL_PORT_MIN = 1024
EPHEMERAL_PORT_MAX = 65535

DEFAULT_WAN_INTERFACE = "WAN"
DEFAULT_LAN_INTERFACE = "LAN"

RULE_CONSOLIDATION_THRESHOLD = 5

ENV_PREFIX = "FORWARDING_ENGINE_"


# ─── Settings ────────────────────────────────────────────────────────────────

class Settings(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])


def load_settings(environ=None) -> Settings:
    """
    Builds Settings from FORWARDING_ENGINE_* variables.
    CORS origins are comma separated.
    """
    env = os.environ if environ is None else environ
    values = {}
    for field_name in Settings.model_fields:
        raw = env.get(ENV_PREFIX + field_name.upper())
        if raw is None:
            continue
        if field_name == "cors_origins":
            values[field_name] = [o.strip() for o in raw.split(",") if o.strip()]
        else:
            values[field_name] = raw
    return Settings(**values)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
