from __future__ import annotations

import sys
from datetime import timedelta
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from newsroom.config import PROJECT_ROOT, SiteConfig, load_site_config, resolve_config_path


def test_missing_file_yields_defaults(tmp_path: Path) -> None:
    config = load_site_config(tmp_path / "absent.yaml")
    assert config == SiteConfig()
    assert config.session_ttl == timedelta(minutes=30)
    assert config.sweep_interval == timedelta(seconds=60)


def test_yaml_values_are_applied(tmp_path: Path) -> None:
    path = tmp_path / "site.yaml"
    path.write_text(
        "\n".join(
            [
                "host: 127.0.0.1",
                "port: 9000",
                "data_dir: store",
                "session_ttl_minutes: 5",
                "sweep_interval_seconds: 10",
                "secure_cookies: true",
                "log_level: DEBUG",
                "site_name: Daily Planet",
            ]
        ),
        encoding="utf-8",
    )

    config = load_site_config(path)
    assert config.host == "127.0.0.1"
    assert config.port == 9000
    assert config.data_dir == (tmp_path / "store").resolve()
    assert config.accounts_path == config.data_dir / "accounts.json"
    assert config.articles_dir == config.data_dir / "articles"
    assert config.session_ttl == timedelta(minutes=5)
    assert config.sweep_interval == timedelta(seconds=10)
    assert config.secure_cookies is True
    assert config.log_level == "debug"
    assert config.site_name == "Daily Planet"


def test_unknown_keys_are_rejected(tmp_path: Path) -> None:
    path = tmp_path / "site.yaml"
    path.write_text("colour: blue\n", encoding="utf-8")
    with pytest.raises(ValueError, match="colour"):
        load_site_config(path)


def test_non_mapping_document_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "site.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_site_config(path)


def test_non_positive_durations_are_rejected() -> None:
    with pytest.raises(ValueError):
        SiteConfig.from_dict({"session_ttl_minutes": 0})
    with pytest.raises(ValueError):
        SiteConfig.from_dict({"sweep_interval_seconds": -1})


def test_environment_overrides(tmp_path: Path) -> None:
    config = SiteConfig().with_env_overrides(
        {"NEWSROOM_DATA_DIR": str(tmp_path), "NEWSROOM_SESSION_SECURE": "yes"}
    )
    assert config.data_dir == tmp_path.resolve()
    assert config.secure_cookies is True
    assert SiteConfig().with_env_overrides({}) == SiteConfig()


def test_resolve_config_path_defaults_to_project_config() -> None:
    assert resolve_config_path(None) == (PROJECT_ROOT / "config" / "site.yaml").resolve()
    assert resolve_config_path("/tmp/custom.yaml") == Path("/tmp/custom.yaml").resolve()
