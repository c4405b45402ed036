"""Configuration loading with environment variable substitution."""

import json
import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ValidationError

from cfkv.exceptions import ConfigError

DEFAULT_API_BASE = "https://api.cloudflare.com/client/v4"

ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)\}")

DEBUG_ENV_VAR = "CFKV_DEBUG"
TRUTHY_VALUES = frozenset({"1", "true", "yes", "on"})


def substitute_env_vars(value: Any, environ: Mapping[str, str] | None = None) -> Any:
    """Recursively substitute ${VAR_NAME} patterns with environment variables."""
    env = os.environ if environ is None else environ

    if isinstance(value, str):
        def replace(match: re.Match[str]) -> str:
            var_name = match.group(1)
            env_value = env.get(var_name)
            if env_value is None:
                raise ConfigError(f"Environment variable {var_name} is not set")
            return env_value

        return ENV_VAR_PATTERN.sub(replace, value)
    elif isinstance(value, dict):
        return {k: substitute_env_vars(v, env) for k, v in value.items()}
    elif isinstance(value, list):
        return [substitute_env_vars(v, env) for v in value]
    return value


def namespace_url(api_base: str, account_id: str, namespace_id: str) -> str:
    """Build the namespace-scoped API URL every request path is appended to."""
    return f"{api_base}/accounts/{account_id}/storage/kv/namespaces/{namespace_id}"


def is_debug_enabled(environ: Mapping[str, str] | None = None) -> bool:
    """Check whether the host debug flag (CFKV_DEBUG) is switched on."""
    env = os.environ if environ is None else environ
    return env.get(DEBUG_ENV_VAR, "").strip().lower() in TRUTHY_VALUES


class KVConfig(BaseModel):
    """Connection settings for a single KV namespace."""

    model_config = {"frozen": True}

    account_id: str
    api_token: str
    namespace_id: str
    api_base: str = DEFAULT_API_BASE
    debug: bool = False
    show_errors: bool = False

    @property
    def base_url(self) -> str:
        """Namespace-scoped API URL every request path is appended to."""
        return namespace_url(self.api_base, self.account_id, self.namespace_id)

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        environ: Mapping[str, str] | None = None,
    ) -> "KVConfig":
        """Load configuration from a dictionary."""
        data = substitute_env_vars(data, environ)
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid KV configuration: {e}") from e

    @classmethod
    def from_file(
        cls,
        path: str | Path,
        environ: Mapping[str, str] | None = None,
    ) -> "KVConfig":
        """Load configuration from a YAML or JSON file.

        A top-level ``kv`` section is used when present, so the settings can
        live inside a larger application config file.
        """
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")

        with path.open() as f:
            if path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        if isinstance(data.get("kv"), dict):
            data = data["kv"]

        return cls.from_dict(data, environ)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "KVConfig":
        """Load configuration from CF_* environment variables.

        Reads CF_ACCOUNT_ID, CF_API_TOKEN, CF_KV_NAMESPACE_ID and the optional
        CF_API_BASE and CFKV_DEBUG.
        """
        env = os.environ if environ is None else environ
        required = {
            "account_id": "CF_ACCOUNT_ID",
            "api_token": "CF_API_TOKEN",
            "namespace_id": "CF_KV_NAMESPACE_ID",
        }
        missing = [var for var in required.values() if not env.get(var)]
        if missing:
            raise ConfigError(
                f"Missing environment variables: {', '.join(missing)}"
            )

        data: dict[str, Any] = {field: env[var] for field, var in required.items()}
        if env.get("CF_API_BASE"):
            data["api_base"] = env["CF_API_BASE"]
        data["debug"] = is_debug_enabled(env)
        return cls.from_dict(data, env)
