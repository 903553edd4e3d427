"""Command-line interface for the newsroom site."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import replace
from getpass import getpass
from typing import Sequence

from newsroom.accounts import PASSWORD_MIN_LENGTH, AccountDirectory, AccountFile
from newsroom.config import SiteConfig, load_site_config, resolve_config_path
from newsroom.models import Permission

logger = logging.getLogger("newsroom.main")

_LOG_LEVELS = ("critical", "error", "warning", "info", "debug")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Newsroom publishing site")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to the YAML site configuration (default: NEWSROOM_CONFIG or config/site.yaml)",
    )
    parser.add_argument(
        "-l",
        "--log",
        "--log-level",
        dest="log_level",
        choices=_LOG_LEVELS,
        default=None,
        help="Log level (default: taken from the configuration, usually info)",
    )
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-data", help="Create the data directory and account file")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP server")
    serve_parser.add_argument("-a", "--addr", "--host", dest="host", default=None, help="Address to bind to")
    serve_parser.add_argument("-p", "--port", type=int, default=None, help="Port to bind to")

    subparsers.add_parser("admin", help="Launch the interactive account console")

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "admin", "init-data"}

    # global options may precede the subcommand
    index = 0
    while index < len(args_list) and args_list[index] in ("--config", "-l", "--log", "--log-level"):
        index += 2
    remainder = args_list[index:]

    if not remainder:
        args_list = [*args_list, "serve"]
    else:
        first = remainder[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in remainder for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = [*args_list[:index], "serve", *remainder]

    return parser.parse_args(args_list)


def _load_config(config_path: str | None) -> SiteConfig:
    path = resolve_config_path(config_path or os.getenv("NEWSROOM_CONFIG"))
    config = load_site_config(path).with_env_overrides()
    logger.debug("Using configuration from %s", path)
    return config


def _open_directory(config: SiteConfig) -> AccountDirectory:
    config.data_dir.mkdir(parents=True, exist_ok=True)
    directory = AccountDirectory(AccountFile(config.accounts_path))
    directory.load()
    return directory


def _serve(config: SiteConfig, *, host: str | None, port: int | None) -> None:
    from newsroom.service import create_app
    import uvicorn

    bind_host = host or config.host
    bind_port = port or config.port
    logger.info("Listening on %s port %s", bind_host, bind_port)

    app = create_app(config=config)
    uvicorn.run(app, host=bind_host, port=bind_port, log_level=config.log_level)


def _run_admin_cli(directory: AccountDirectory) -> None:
    """Provide an interactive account console for administrators."""

    print("Newsroom Account Console")
    print("Press Ctrl+C at any time to exit.\n")

    try:
        while True:
            print("Select an option:")
            print("  1) List all accounts")
            print("  2) Add a new account")
            print("  3) Change an account's permission")
            print("  4) Exit")

            choice = input("Enter choice [1-4]: ").strip()

            if choice == "1":
                _list_accounts(directory)
            elif choice == "2":
                _add_account(directory)
            elif choice == "3":
                _change_permission(directory)
            elif choice == "4":
                print("Goodbye!")
                return
            else:
                print("Invalid selection. Please choose a number from the menu.\n")

            print()
    except KeyboardInterrupt:
        print("\nExiting account console.")


def _list_accounts(directory: AccountDirectory) -> None:
    accounts = directory.list_accounts()
    if not accounts:
        print("No accounts are currently registered.")
        return

    print(f"{len(accounts)} account(s) found:")
    print(f"{'Username':<24}  {'Permission':<10}  {'Email':<32}  Created")
    print("-" * 90)
    for account in accounts:
        created = account.created_at.strftime("%Y-%m-%d %H:%M:%S %Z")
        print(f"{account.username:<24}  {account.permission.value:<10}  {account.email:<32}  {created}")


def _prompt_permission(prompt: str) -> Permission | None:
    raw = input(prompt).strip()
    if not raw:
        return None
    try:
        return Permission.parse(raw)
    except ValueError as exc:
        print(exc)
        return None


def _add_account(directory: AccountDirectory) -> None:
    print("\nCreate a new account (leave the username blank to cancel).")
    username = input("Username: ").strip()
    if not username:
        print("Account creation cancelled.")
        return

    email = input("Email address: ").strip()
    permission = _prompt_permission("Permission [Admin/Editor/User, default User]: ") or Permission.USER

    password = _prompt_for_password()
    if password is None:
        print("Aborted creating account.")
        return

    try:
        account = directory.create(username, email, password, permission=permission)
    except ValueError as exc:
        print(f"Failed to create account: {exc}")
        return

    print(f"Created account {account.username} <{account.email}> ({account.permission.value})")


def _change_permission(directory: AccountDirectory) -> None:
    username = input("Username: ").strip()
    if directory.get(username) is None:
        print(f"No account named {username!r}.")
        return
    permission = _prompt_permission("New permission [Admin/Editor/User]: ")
    if permission is None:
        print("Permission unchanged.")
        return
    directory.set_permission(username, permission)
    print(f"{username} is now {permission.value}.")


def _prompt_for_password() -> str | None:
    for _ in range(3):
        password = getpass(f"Password (min {PASSWORD_MIN_LENGTH} characters): ")
        if len(password) < PASSWORD_MIN_LENGTH:
            print("Password is too short. Please try again.")
            continue
        confirmation = getpass("Confirm password: ")
        if password != confirmation:
            print("Passwords do not match. Please try again.")
            continue
        return password
    return None


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    args = _parse_args(argv)
    config = _load_config(args.config)
    level_name = args.log_level or config.log_level
    logging.basicConfig(
        level=getattr(logging, level_name.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    if args.command == "serve":
        if args.log_level:
            config = replace(config, log_level=args.log_level)
        _serve(config, host=args.host, port=args.port)
    elif args.command == "admin":
        _run_admin_cli(_open_directory(config))
    elif args.command == "init-data":
        directory = _open_directory(config)
        print(f"Data directory ready at {config.data_dir} ({len(directory)} account(s)).")


if __name__ == "__main__":
    main()
