"""Flat-file article storage, one JSON document per article."""

from __future__ import annotations

import json
import logging
from contextlib import suppress
from pathlib import Path
from typing import List, Optional
from uuid import UUID

from pydantic import ValidationError

from .accounts import edit_distance
from .models import Article, ArticleStatus, utcnow

logger = logging.getLogger("newsroom.articles")

DESCRIPTION_LENGTH = 100


def format_for_description(content: str) -> str:
    """Return a plain-text teaser built from the first characters of ``content``."""

    result: List[str] = []
    in_tag = False
    for char in content[:DESCRIPTION_LENGTH]:
        if in_tag:
            if char == ">":
                in_tag = False
        elif char == "<":
            in_tag = True
        else:
            result.append(char)
    return "".join(result) + "..."


class ArticleStore:
    """Read and write articles under ``directory`` keyed by their UUID."""

    def __init__(self, directory: Path) -> None:
        self._directory = directory
        self._directory.mkdir(parents=True, exist_ok=True)

    @property
    def directory(self) -> Path:
        return self._directory

    def _path_for(self, uuid: UUID) -> Path:
        return self._directory / f"{uuid}.json"

    def _read(self, path: Path) -> Article:
        with path.open("r", encoding="utf-8") as handle:
            raw = json.load(handle)
        try:
            return Article.model_validate(raw)
        except ValidationError as exc:
            raise ValueError(f"Article file {path} is corrupt: {exc}") from exc

    def create(self, title: str, content: str, author: str) -> Article:
        article = Article(title=title, content=content, author=author)
        self._write(article)
        logger.info("Created article %s by %s", article.uuid, author)
        return article

    def get(self, uuid: UUID) -> Optional[Article]:
        path = self._path_for(uuid)
        if not path.exists():
            return None
        return self._read(path)

    def all(self) -> List[Article]:
        return [self._read(path) for path in sorted(self._directory.glob("*.json"))]

    def newest_first(self, *, status: Optional[ArticleStatus] = None) -> List[Article]:
        articles = self.all()
        if status is not None:
            articles = [article for article in articles if article.status is status]
        return sorted(articles, key=lambda article: article.created_at, reverse=True)

    def save(self, article: Article) -> Article:
        updated = article.model_copy(update={"updated_at": utcnow()})
        self._write(updated)
        return updated

    def delete(self, uuid: UUID) -> None:
        with suppress(FileNotFoundError):
            self._path_for(uuid).unlink()
            logger.info("Deleted article %s", uuid)

    def search(self, term: str, *, limit: int = 10) -> List[Article]:
        ranked = sorted(self.all(), key=lambda article: edit_distance(article.title, term))
        return ranked[:limit]

    def _write(self, article: Article) -> None:
        path = self._path_for(article.uuid)
        path.write_text(article.model_dump_json(indent=2), encoding="utf-8")


__all__ = ["ArticleStore", "DESCRIPTION_LENGTH", "format_for_description"]
