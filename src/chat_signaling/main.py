"""Main entry point for the chat signaling server."""

import asyncio
import logging
import sys

from chat_signaling.adapters.config import AppConfig, DirectoryConfigurationLoader
from chat_signaling.adapters.directory import InMemoryUserDirectory
from chat_signaling.adapters.web import ConnectionHub, InMemoryPresenceRegistry, SignalingWebAdapter
from chat_signaling.adapters.web.broadcasters import PresenceBroadcaster
from chat_signaling.application.services.group_call_rosters import GroupCallRosters
from chat_signaling.application.services.signaling_service import SignalingService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stderr,
)

logger = logging.getLogger(__name__)


def build_adapter(config: AppConfig) -> SignalingWebAdapter:
    """Wire the signaling service into the web adapter.

    Raises:
        ValueError: If the user directory is invalid.
        FileNotFoundError: If the configured TOML file does not exist.
    """
    directory_config = DirectoryConfigurationLoader.load(config)
    directory = InMemoryUserDirectory(
        users=directory_config.users,
        groups=directory_config.groups,
        allow_unknown_users=config.allow_unknown_users,
    )

    presence = InMemoryPresenceRegistry()
    hub = ConnectionHub(presence)
    service = SignalingService(
        presence=presence,
        relay=hub,
        presence_broadcaster=PresenceBroadcaster(hub),
        directory=directory,
        rosters=GroupCallRosters(),
    )
    return SignalingWebAdapter(service, hub, presence, config)


async def main() -> None:
    """Main application entry point."""
    config = AppConfig()
    logging.getLogger().setLevel(config.log_level)

    try:
        adapter = build_adapter(config)
    except (ValueError, FileNotFoundError) as e:
        logger.error(f"Invalid directory configuration: {e}")
        sys.exit(1)

    logger.info(f"Unknown users {'allowed' if config.allow_unknown_users else 'rejected'}")

    try:
        await adapter.start()
    except KeyboardInterrupt:
        logger.info("Shutting down...")
        await adapter.stop()


def run() -> None:
    """Synchronous entry point for the server command."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
