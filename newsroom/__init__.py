"""A small self-hosted publishing site."""

from __future__ import annotations

from typing import Any

from .config import SiteConfig, load_site_config, resolve_config_path
from .template import Template, TemplateLibrary, render


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the site application."""

    from .service import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "SiteConfig",
    "Template",
    "TemplateLibrary",
    "create_app",
    "load_site_config",
    "render",
    "resolve_config_path",
]
