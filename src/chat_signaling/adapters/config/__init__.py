"""Configuration adapters."""

from chat_signaling.adapters.config.app_config import AppConfig
from chat_signaling.adapters.config.directory_configuration_loader import (
    DirectoryConfiguration,
    DirectoryConfigurationLoader,
)

__all__ = ["AppConfig", "DirectoryConfiguration", "DirectoryConfigurationLoader"]
