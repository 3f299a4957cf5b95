"""Configuration for pysignin using pydantic and pydantic-settings.

``SignInConfiguration`` is the immutable client configuration a
``SignInClient`` runs with. ``SignInSettings`` loads the values it is
built from, layered as:

1. Built-in defaults (lowest priority)
2. pyproject.toml [tool.pysignin] section (project-level)
3. ./pysignin.toml (project-level, explicit)
4. ~/.config/pysignin/config.toml (user-level, overrides project)
5. File named by PYSIGNIN_CONFIG_FILE
6. Environment variables with the PYSIGNIN_ prefix (highest priority)

Example: PYSIGNIN_CLIENT_ID=1234-abc.apps.googleusercontent.com
"""

from __future__ import annotations

import os
import sys

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .exceptions import MissingConfigurationError


if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib


CLIENT_ID_SUFFIX = ".apps.googleusercontent.com"
DEFAULT_SCOPES = ("openid", "email", "profile")

_ENV_PREFIX = "PYSIGNIN_"


def _split_list(v: Any) -> Any:
    """Accept a comma- or space-separated string (from env var) or a list."""
    if isinstance(v, str):
        return [s for s in v.replace(",", " ").split() if s]
    return v


class SignInConfiguration(BaseModel):
    """Client configuration for Google sign-in.

    Immutable once constructed; replace it through
    ``SignInClient.configure`` to change it.

    Attributes
    ----------
    client_id : str
        OAuth client ID, ending in ``.apps.googleusercontent.com``.
    server_client_id : str or None
        Client ID of the backend that will consume identity tokens.
    hosted_domain : str or None
        Restrict sign-in to accounts of this Google Workspace domain.
    scopes : list[str]
        Default scopes requested, in order.
    """

    model_config = ConfigDict(frozen=True)

    client_id: str
    server_client_id: str | None = None
    hosted_domain: str | None = None
    scopes: list[str] = Field(default_factory=lambda: list(DEFAULT_SCOPES))

    @field_validator("client_id")
    @classmethod
    def _check_client_id(cls, v: str) -> str:
        if not v.endswith(CLIENT_ID_SUFFIX) or v == CLIENT_ID_SUFFIX:
            msg = f"Invalid client ID format. Expected format: YOUR_CLIENT_ID{CLIENT_ID_SUFFIX}"
            raise ValueError(msg)
        return v

    @field_validator("scopes", mode="before")
    @classmethod
    def _parse_scopes(cls, v: Any) -> Any:
        return _split_list(v)

    @field_validator("scopes")
    @classmethod
    def _check_scopes(cls, v: list[str]) -> list[str]:
        if not v:
            msg = "At least one scope is required"
            raise ValueError(msg)
        return v


def _find_config_files() -> list[Path]:
    """Find all configuration files in order of precedence (lowest first)."""
    files = []

    pyproject = Path("pyproject.toml")
    if pyproject.exists():
        files.append(pyproject)

    local_toml = Path("pysignin.toml")
    if local_toml.exists():
        files.append(local_toml)

    if sys.platform == "win32":
        user_config = Path(os.environ.get("APPDATA", "~")) / "pysignin" / "config.toml"
    else:
        user_config = Path("~/.config/pysignin/config.toml")
    user_config = user_config.expanduser()
    if user_config.exists():
        files.append(user_config)

    env_config = os.environ.get("PYSIGNIN_CONFIG_FILE")
    if env_config:
        env_path = Path(env_config)
        if env_path.exists():
            files.append(env_path)

    return files


def _load_toml_config() -> dict[str, Any]:
    """Load and merge all TOML configuration files."""
    merged: dict[str, Any] = {}

    for config_file in _find_config_files():
        try:
            data = tomllib.loads(config_file.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError):
            continue  # unreadable config files are skipped

        if config_file.name == "pyproject.toml":
            data = data.get("tool", {}).get("pysignin", {})

        merged.update(data)

    return merged


class SignInSettings(BaseSettings):
    """Settings a ``SignInClient`` is built from.

    Environment prefix: PYSIGNIN_
    Example: PYSIGNIN_SCOPES="openid email"
    Example: PYSIGNIN_TOKEN_STORE_BACKEND=keyring

    TOML section: [tool.pysignin]
    """

    model_config = SettingsConfigDict(
        env_prefix=_ENV_PREFIX,
        extra="ignore",
    )

    client_id: str = Field(
        default="",
        description="OAuth client ID (YOUR_CLIENT_ID.apps.googleusercontent.com)",
    )
    server_client_id: str = Field(
        default="",
        description="Backend client ID accepted as identity-token audience",
    )
    hosted_domain: str = Field(
        default="",
        description="Restrict sign-in to this Google Workspace domain",
    )
    scopes: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_SCOPES),
        description="Scopes to request (space- or comma-separated in env vars)",
    )
    registered_schemes: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="URL schemes the host application is registered to receive",
    )
    http_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for token endpoint requests",
    )
    token_store_backend: Literal["memory", "keyring"] = Field(
        default="memory",
        description="Token storage backend: memory or keyring",
    )
    keyring_service_name: str = Field(
        default="pysignin",
        description="Service name used for keyring entries",
    )
    verify_id_token: bool = Field(
        default=False,
        description="Verify identity-token signature, issuer, audience and nonce",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"

    @field_validator("scopes", "registered_schemes", mode="before")
    @classmethod
    def _parse_list(cls, v: Any) -> Any:
        return _split_list(v)

    def __init__(self, **data: Any) -> None:
        # TOML values apply only where no environment variable overrides them
        toml_config = {
            k: v
            for k, v in _load_toml_config().items()
            if f"{_ENV_PREFIX}{k.upper()}" not in os.environ
        }
        super().__init__(**{**toml_config, **data})

    def to_configuration(self) -> SignInConfiguration:
        """Build the immutable client configuration.

        Raises
        ------
        MissingConfigurationError
            If no client ID is set or the values are malformed.
        """
        if not self.client_id:
            raise MissingConfigurationError(
                "Google Sign-In configuration is missing (set PYSIGNIN_CLIENT_ID)"
            )
        try:
            return SignInConfiguration(
                client_id=self.client_id,
                server_client_id=self.server_client_id or None,
                hosted_domain=self.hosted_domain or None,
                scopes=self.scopes,
            )
        except ValidationError as exc:
            msg = f"Invalid sign-in configuration: {exc.errors()[0]['msg']}"
            raise MissingConfigurationError(msg, client_id=self.client_id) from exc

    def to_toml(self) -> str:
        """Export settings as a [tool.pysignin]-compatible TOML string."""
        lines = ["# pysignin configuration", "# Generated by: pysignin config --toml", ""]
        for field_name, field_value in self.model_dump().items():
            if isinstance(field_value, list):
                value_str = "[" + ", ".join(f'"{v}"' for v in field_value) + "]"
            elif isinstance(field_value, bool):
                value_str = "true" if field_value else "false"
            elif isinstance(field_value, str):
                value_str = f'"{field_value}"'
            else:
                value_str = str(field_value)
            lines.append(f"{field_name} = {value_str}")
        return "\n".join(lines)

    def to_env(self) -> str:
        """Export settings as shell environment variables."""
        lines = ["# pysignin environment variables", "# Generated by: pysignin config --env", ""]
        for field_name, field_value in self.model_dump().items():
            if isinstance(field_value, list):
                value_str = " ".join(str(v) for v in field_value)
            elif isinstance(field_value, bool):
                value_str = "true" if field_value else "false"
            else:
                value_str = str(field_value)
            lines.append(f'export {_ENV_PREFIX}{field_name.upper()}="{value_str}"')
        return "\n".join(lines)


@lru_cache(maxsize=1)
def get_settings() -> SignInSettings:
    """Get the settings instance (cached).

    Call clear_settings() to reload configuration.
    """
    return SignInSettings()


def clear_settings() -> None:
    """Clear the cached settings to force reload."""
    get_settings.cache_clear()


def reload_settings() -> SignInSettings:
    """Reload settings from all sources."""
    clear_settings()
    return get_settings()
