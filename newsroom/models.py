"""Domain models for accounts and articles."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Permission(str, Enum):
    """Permission level attached to an account.

    Levels are compared by equality only; the declaration order (most
    privileged first) is used for display purposes.
    """

    ADMIN = "Admin"
    EDITOR = "Editor"
    USER = "User"

    @classmethod
    def parse(cls, value: str) -> "Permission":
        cleaned = value.strip().lower()
        for member in cls:
            if member.value.lower() == cleaned:
                return member
        raise ValueError(f"Unknown permission '{value}'")


class ArticleStatus(str, Enum):
    PUBLISHED = "Published"
    NEEDS_REVIEW = "NeedsReview"


class Account(BaseModel):
    """A registered account as persisted in the account file."""

    username: str = Field(..., min_length=1, max_length=64)
    permission: Permission = Permission.USER
    email: str = Field(..., min_length=3, max_length=255)
    password_hash: str
    created_at: datetime = Field(default_factory=utcnow)


class Article(BaseModel):
    """An article submitted by an account, stored as a flat file."""

    uuid: UUID = Field(default_factory=uuid4)
    title: str
    content: str
    author: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    status: ArticleStatus = ArticleStatus.NEEDS_REVIEW

    @property
    def is_published(self) -> bool:
        return self.status is ArticleStatus.PUBLISHED


__all__ = ["Account", "Article", "ArticleStatus", "Permission", "utcnow"]
