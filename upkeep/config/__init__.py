"""Application configuration + declarative YAML profile loader for upkeep.

All env vars defined here with UPKEEP_ prefix.
YAML loaders: load_profiles_yaml(), find_profile()
"""

import json
import warnings
from typing import Annotated

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode

from upkeep.config.loader import load_profiles_yaml, find_profile
from upkeep.config.schema import PluginProfileYAML, ProfilesConfig


class UpkeepConfig(BaseSettings):
    # ── App ──
    app_name: str = "upkeep"
    debug: bool = False                         # attaches installer traces to rollback responses
    log_level: str = "INFO"
    secret_key: str = "change-me-in-production-upkeep-insecure-default-key"

    # ── Site ──
    site_url: str = "http://localhost"
    plugins_dir: str = "./plugins"
    state_dir: str = "./.upkeep"
    backup_dir: str = ""                        # empty = <state_dir>/backups
    profiles_file: str = "./plugins.yaml"

    # ── Update server ──
    request_timeout: float = 10.0               # seconds, single outbound request
    default_requires: str = "6.4"
    default_requires_php: str = "7.4"
    update_cache_ttl: int = 43200               # seconds; older cached decisions are refetched

    # ── Packages ──
    enforce_package_origin: bool = False        # only allow packages from the update host + trusted hosts
    trusted_package_hosts: Annotated[list[str], NoDecode] = []   # JSON list or "a.test,b.test"
    download_timeout: float = 60.0

    # ── Auth ──
    jwt_algorithm: str = "HS256"
    jwt_expiry_minutes: int = 60
    nonce_ttl_minutes: int = 720                # half a day, like a host nonce tick
    update_capability: str = "update_plugins"

    # ── Server ──
    host: str = "127.0.0.1"
    port: int = 8000
    recheck_redirect_url: str = "/plugins"

    @field_validator("trusted_package_hosts", mode="before")
    @classmethod
    def split_hosts(cls, v):
        if isinstance(v, str):
            v = v.strip()
            if v.startswith("["):
                return json.loads(v)
            return [host.strip() for host in v.split(",") if host.strip()]
        return v

    model_config = {"env_prefix": "UPKEEP_", "env_file": ".env", "extra": "ignore"}


config = UpkeepConfig()

if config.secret_key == "change-me-in-production-upkeep-insecure-default-key":
    warnings.warn("UPKEEP_SECRET_KEY is the insecure default; set a strong value in .env", stacklevel=1)
elif len(config.secret_key.encode()) < 32:
    warnings.warn(
        f"UPKEEP_SECRET_KEY is {len(config.secret_key.encode())} bytes; "
        "minimum 32 required for HS256 nonces", stacklevel=1
    )

__all__ = [
    "UpkeepConfig",
    "config",
    "load_profiles_yaml",
    "find_profile",
    "PluginProfileYAML",
    "ProfilesConfig",
]
