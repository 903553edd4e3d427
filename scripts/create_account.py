import argparse
import getpass
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from newsroom.accounts import PASSWORD_MIN_LENGTH, AccountDirectory, AccountFile
from newsroom.config import load_site_config, resolve_config_path
from newsroom.models import Permission


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a newsroom account")
    parser.add_argument("username", help="Unique username shown on articles and profiles")
    parser.add_argument("email", help="Unique email address for login")
    parser.add_argument(
        "--permission",
        default=Permission.USER.value,
        help="Admin, Editor or User (default: User)",
    )
    parser.add_argument(
        "--data-dir",
        dest="data_dir",
        default=None,
        help="Data directory (defaults to NEWSROOM_DATA_DIR or the configured data_dir)",
    )
    return parser.parse_args()


def prompt_for_password() -> str:
    for _ in range(3):
        password = getpass.getpass("Password: ")
        confirm = getpass.getpass("Confirm password: ")
        if password != confirm:
            print("Passwords do not match. Try again.", file=sys.stderr)
            continue
        if len(password) < PASSWORD_MIN_LENGTH:
            print(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long.", file=sys.stderr)
            continue
        return password
    raise SystemExit("Failed to set password after three attempts.")


def main() -> int:
    args = parse_args()
    try:
        permission = Permission.parse(args.permission)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    config = load_site_config(resolve_config_path(os.getenv("NEWSROOM_CONFIG"))).with_env_overrides()
    data_dir = Path(args.data_dir).expanduser() if args.data_dir else config.data_dir
    data_dir.mkdir(parents=True, exist_ok=True)

    password = prompt_for_password()

    directory = AccountDirectory(AccountFile(data_dir / config.accounts_path.name))
    directory.load()

    try:
        account = directory.create(args.username.strip(), args.email, password, permission=permission)
    except ValueError as exc:  # duplicates, invalid names
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Created {account.permission.value} account {account.username} <{account.email}>")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
