"""PBAC configuration via pydantic-settings."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_SUPPORTED_ACTIONS = [
    "view",
    "viewAny",
    "create",
    "update",
    "delete",
    "restore",
    "forceDelete",
    "publish",
    "archive",
]


class PbacSettings(BaseSettings):
    """Settings consumed by the decision engine and authoring tools."""

    model_config = SettingsConfigDict(
        env_prefix="PBAC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Registration strictness
    strict_resource_registration: bool = False
    strict_target_registration: bool = False

    # Principal attribute that bypasses evaluation (None disables)
    super_admin_attribute: str | None = "is_super_admin"

    # Only used by authoring tools, never by evaluation
    supported_actions: list[str] = list(DEFAULT_SUPPORTED_ACTIONS)

    # === CACHE SETTINGS ===
    cache_enabled: bool = True
    cache_ttl_seconds: int = 60 * 60 * 24
    cache_key_prefix: str = "pbac:"
    cache_max_entries: int = 10000

    # === LOGGING SETTINGS ===
    logging_enabled: bool = True
    logging_channel: str = "pbac"
    logging_level: str = "WARNING"

    # === STORAGE SETTINGS ===
    database_url: str = "sqlite:///pbac.db"

    # === AUDIT SETTINGS ===
    audit_enabled: bool = False
    audit_storage_path: str = "data/audit"

    def is_supported_action(self, action: str) -> bool:
        """Check an action against the authoring allowlist."""
        return action in self.supported_actions


_settings: PbacSettings | None = None


def get_settings() -> PbacSettings:
    """Get the settings singleton."""
    global _settings
    if _settings is None:
        _settings = PbacSettings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
