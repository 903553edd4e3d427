import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from main import _parse_args


def test_default_command_invokes_serve() -> None:
    args = _parse_args([])
    assert args.command == "serve"


def test_default_command_accepts_options_without_subcommand() -> None:
    args = _parse_args(["--host", "127.0.0.1", "--port", "8080"])
    assert args.command == "serve"
    assert args.host == "127.0.0.1"
    assert args.port == 8080


def test_global_options_precede_implicit_serve() -> None:
    args = _parse_args(["--config", "site.yaml", "-l", "debug", "-p", "9000"])
    assert args.command == "serve"
    assert args.config == "site.yaml"
    assert args.log_level == "debug"
    assert args.port == 9000


def test_admin_subcommand_still_available() -> None:
    args = _parse_args(["admin"])
    assert args.command == "admin"


def test_init_data_subcommand() -> None:
    args = _parse_args(["--config", "site.yaml", "init-data"])
    assert args.command == "init-data"
    assert args.config == "site.yaml"
