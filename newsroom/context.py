"""Shared state handed to every handler and middleware at startup."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .accounts import AccountDirectory, AccountFile
from .articles import ArticleStore
from .config import SiteConfig
from .sessions import SessionStore
from .template import DEFAULT_TEMPLATE_DIR, TemplateLibrary

logger = logging.getLogger("newsroom.context")


@dataclass(frozen=True)
class SiteContext:
    config: SiteConfig
    sessions: SessionStore
    accounts: AccountDirectory
    articles: ArticleStore
    templates: TemplateLibrary


def build_context(
    config: Optional[SiteConfig] = None,
    *,
    template_dir: Path = DEFAULT_TEMPLATE_DIR,
) -> SiteContext:
    """Load templates and accounts and assemble a :class:`SiteContext`.

    Broken templates or an unreadable account file abort here, before the
    server accepts any request.
    """

    config = config or SiteConfig()
    templates = TemplateLibrary.load(template_dir)
    logger.info("Loaded %d template(s) from %s", len(templates), template_dir)

    config.data_dir.mkdir(parents=True, exist_ok=True)
    accounts = AccountDirectory(AccountFile(config.accounts_path))
    accounts.load()

    return SiteContext(
        config=config,
        sessions=SessionStore(ttl=config.session_ttl),
        accounts=accounts,
        articles=ArticleStore(config.articles_dir),
        templates=templates,
    )


__all__ = ["SiteContext", "build_context"]
