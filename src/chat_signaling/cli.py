"""CLI helpers for operating a chat signaling server."""

import asyncio
import json
import sys

import aiohttp

from chat_signaling.adapters.client import fetch_online_users
from chat_signaling.adapters.config import AppConfig, DirectoryConfigurationLoader


def check_config(config_file: str, allow_unknown_users: bool | None = None) -> int:
    """Validate a TOML directory file and print a summary.

    Returns:
        Process exit code (0 when valid).
    """
    config = AppConfig(config_file=config_file)
    if allow_unknown_users is not None:
        config = config.model_copy(update={"allow_unknown_users": allow_unknown_users})

    try:
        directory = DirectoryConfigurationLoader.load(config)
    except (ValueError, FileNotFoundError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1

    print(f"Configuration OK: {config_file}")
    print(f"  Users: {len(directory.users)}")
    for user in directory.users:
        print(f"    {user.id} ({user.display_name})")
    print(f"  Groups: {len(directory.groups)}")
    for group in directory.groups:
        print(f"    {group.id} ({group.name}): {', '.join(group.members) or 'no members'}")
    return 0


async def show_online(base_url: str, format_json: bool = False) -> int:
    """Print the users currently online on a running server."""
    async with aiohttp.ClientSession() as session:
        users = await fetch_online_users(session, base_url)

    if format_json:
        print(json.dumps(users, indent=2, ensure_ascii=False))
    elif not users:
        print("No users online.")
    else:
        print(f"{len(users)} user(s) online:")
        for user_id in users:
            print(f"  {user_id}")
    return 0


async def main() -> None:
    """Main CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Chat Signaling Operations Helper",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Validate the user and group directory
  chat-signaling-cli check-config config.toml

  # List users online on a running server
  chat-signaling-cli online http://localhost:8000
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    check_parser = subparsers.add_parser("check-config", help="Validate a TOML directory file")
    check_parser.add_argument("config_file", help="Path to the TOML file")
    check_parser.add_argument(
        "--strict",
        action="store_true",
        help="Reject group members that are not declared as users",
    )

    online_parser = subparsers.add_parser("online", help="List users online on a server")
    online_parser.add_argument(
        "base_url", nargs="?", default="http://localhost:8000", help="Server base URL"
    )
    online_parser.add_argument("--json", action="store_true", help="Output as JSON")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        if args.command == "check-config":
            exit_code = check_config(args.config_file, False if args.strict else None)
        elif args.command == "online":
            exit_code = await show_online(args.base_url, format_json=args.json)
        else:
            exit_code = 1
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if exit_code:
        sys.exit(exit_code)


def cli_main() -> None:
    """Synchronous entry point for the CLI command."""
    asyncio.run(main())


if __name__ == "__main__":
    cli_main()
