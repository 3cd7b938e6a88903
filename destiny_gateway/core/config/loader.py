"""
Configuration Loader

Handles loading and validation of configuration.
"""

import os
import logging
from typing import Optional, Dict, Any

from dotenv import load_dotenv

from ..exceptions import ConfigurationError
from .settings import Settings

logger = logging.getLogger(__name__)


class ConfigLoader:
    """Loads and manages application configuration."""

    _settings: Optional[Settings] = None

    @classmethod
    def load_config(
        cls,
        env_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None
    ) -> Settings:
        """
        Load configuration from environment and files.

        Args:
            env_file: Path to .env file
            overrides: Environment variable overrides (e.g. {"PORT": 4000})

        Returns:
            Loaded settings
        """
        if cls._settings is not None:
            return cls._settings

        if env_file:
            load_dotenv(env_file, override=False)

        # Apply overrides to environment
        if overrides:
            for key, value in overrides.items():
                os.environ[key.upper()] = str(value)

        try:
            cls._settings = Settings()
        except Exception as e:
            logger.error(f"Failed to load configuration: {e}")
            raise ConfigurationError(
                f"Invalid configuration: {e}",
                details={"cause": str(e)}
            ) from e

        logger.info("Configuration loaded successfully")

        # Log non-sensitive config info
        cls._log_config_info()

        return cls._settings

    @classmethod
    def get_settings(cls) -> Settings:
        """
        Get current settings instance.

        Returns:
            Current settings

        Raises:
            ConfigurationError: If config not loaded
        """
        if cls._settings is None:
            raise ConfigurationError(
                "Configuration not loaded. Call load_config() first."
            )
        return cls._settings

    @classmethod
    def reload_config(
        cls,
        env_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None
    ) -> Settings:
        """
        Reload configuration.

        Args:
            env_file: Path to .env file
            overrides: Environment variable overrides

        Returns:
            Reloaded settings
        """
        cls._settings = None
        return cls.load_config(env_file, overrides)

    @classmethod
    def _log_config_info(cls) -> None:
        """Log non-sensitive configuration information."""
        if not cls._settings:
            return

        settings = cls._settings
        logger.info(f"App: {settings.app_name} v{settings.app_version}")
        logger.info(f"Bungie API: {settings.api.base_url}")
        logger.info(
            f"Rate Limit: {settings.rate_limit.max_requests} requests "
            f"per {settings.rate_limit.window_ms}ms"
        )
        logger.info(f"OAuth client configured: {settings.has_oauth_client()}")

    @classmethod
    def validate_config(cls) -> bool:
        """
        Validate current configuration.

        Returns:
            True if config is usable; missing OAuth client settings only
            produce a warning since public tools work without them
        """
        if not cls._settings:
            logger.error("No configuration loaded")
            return False

        if not cls._settings.api.api_key:
            logger.error("Missing required config: BUNGIE_API_KEY")
            return False

        if not cls._settings.has_oauth_client():
            logger.warning(
                "BUNGIE_CLIENT_ID/BUNGIE_CLIENT_SECRET not set; "
                "authenticated tools will be unavailable"
            )

        return True


def get_settings() -> Settings:
    """Get current settings instance."""
    return ConfigLoader.get_settings()
