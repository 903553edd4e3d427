"""Public pages of the newsroom site."""

from __future__ import annotations

import html
import logging
from datetime import datetime
from typing import Dict, List, Mapping, Optional
from urllib.parse import parse_qs
from uuid import UUID

from fastapi import FastAPI, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from .articles import format_for_description
from .context import SiteContext
from .models import Article, ArticleStatus

logger = logging.getLogger("newsroom.web")

SESSION_COOKIE_NAME = "newsroom_session"

ENTER_ACTIONS = {"login", "signup", "logout"}


def format_date(value: datetime) -> str:
    return f"{value:%B} {value.day}, {value.year}"


# braces become entities so author text is never read as a placeholder
_BRACES = str.maketrans({"{": "&#123;", "}": "&#125;"})


def escape(value: object) -> str:
    return html.escape(str(value)).translate(_BRACES)


def inert(markup: str) -> str:
    """Return author-supplied HTML with its braces entity-encoded."""

    return markup.translate(_BRACES)


def current_username(context: SiteContext, cookies: Mapping[str, str]) -> Optional[str]:
    """Resolve (and refresh) the session named by the request cookie."""

    return context.sessions.touch_and_validate(cookies.get(SESSION_COOKIE_NAME))


def render_page(
    request: Request,
    context: SiteContext,
    main: object,
    *,
    status_code: int = status.HTTP_200_OK,
) -> HTMLResponse:
    """Wrap ``main`` in the site header, reflecting the visitor's login state."""

    username = current_username(context, request.cookies)
    return context.templates["header"].render_html(
        site_name=escape(context.config.site_name),
        logged_in=username is not None,
        username=escape(username or ""),
        main=main,
        status_code=status_code,
    )


def render_not_found(request: Request, context: SiteContext) -> HTMLResponse:
    return render_page(
        request,
        context,
        context.templates["errors/404"],
        status_code=status.HTTP_404_NOT_FOUND,
    )


async def parse_form(request: Request) -> Dict[str, str]:
    body_bytes = await request.body()
    content_type = request.headers.get("content-type", "")
    charset = "utf-8"
    if "charset=" in content_type:
        charset = content_type.split("charset=", 1)[1].split(";", 1)[0].strip() or "utf-8"
    try:
        decoded = body_bytes.decode(charset)
    except (LookupError, UnicodeDecodeError):
        decoded = body_bytes.decode("utf-8", errors="ignore")
    data = parse_qs(decoded, keep_blank_values=True)
    return {key: values[0] for key, values in data.items()}


def parse_uuid(raw: str) -> Optional[UUID]:
    try:
        return UUID(raw)
    except ValueError:
        return None


def issue_session_cookie(response: Response, context: SiteContext, token: str) -> None:
    response.set_cookie(
        SESSION_COOKIE_NAME,
        token,
        secure=context.config.secure_cookies,
        httponly=True,
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response: Response, context: SiteContext, token: Optional[str]) -> None:
    context.sessions.invalidate(token)
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")


def render_article_small(context: SiteContext, article: Article, *, template: str = "article_small") -> str:
    return context.templates[template].render(
        uuid=str(article.uuid),
        title=escape(article.title),
        author=escape(article.author),
        description=escape(format_for_description(article.content)),
        date=format_date(article.created_at),
    )


def render_article_list(context: SiteContext, articles: List[Article], *, template: str = "article_small") -> str:
    return "<br />".join(
        render_article_small(context, article, template=template) for article in articles
    )


def register_public_routes(app: FastAPI, context: SiteContext) -> None:
    """Expose the public HTML pages on the provided FastAPI app."""

    templates = context.templates

    def _enter_page(request: Request, page: str, *, error: str = "", status_code: int = 200) -> HTMLResponse:
        body = templates[page].render(error=escape(error))
        return render_page(request, context, body, status_code=status_code)

    def _publish_page(request: Request, *, logged_in: bool, error: str = "", status_code: int = 200) -> HTMLResponse:
        body = templates["publish"].render(error=escape(error), logged_in=logged_in)
        return render_page(request, context, body, status_code=status_code)

    def _start_session(username: str) -> RedirectResponse:
        token = context.sessions.create(username)
        response = RedirectResponse("/", status_code=status.HTTP_303_SEE_OTHER)
        issue_session_cookie(response, context, token)
        return response

    def _render_profile(request: Request, username: str) -> HTMLResponse:
        account = context.accounts.get(username)
        if account is None:
            return render_page(
                request,
                context,
                templates["errors/account_not_found"],
                status_code=status.HTTP_404_NOT_FOUND,
            )

        articles = [
            article
            for article in context.articles.newest_first(status=ArticleStatus.PUBLISHED)
            if article.author == username
        ]
        body = templates["profile"].render(
            username=escape(account.username),
            rank=account.permission.value,
            created_at=format_date(account.created_at),
            article_count=len(articles),
            articles=render_article_list(context, articles) or "No articles found",
        )
        return render_page(request, context, body)

    @app.get("/", response_class=HTMLResponse, name="home")
    async def index(request: Request):
        articles = context.articles.newest_first(status=ArticleStatus.PUBLISHED)
        body = templates["index"].render(articles=render_article_list(context, articles))
        return render_page(request, context, body)

    @app.get("/article/{article_id}", response_class=HTMLResponse, name="article")
    async def get_article(article_id: str, request: Request):
        uuid = parse_uuid(article_id)
        article = context.articles.get(uuid) if uuid is not None else None
        if article is None or not article.is_published:
            return render_not_found(request, context)

        body = templates["article"].render(
            title=escape(article.title),
            author=escape(article.author),
            date=format_date(article.updated_at),
            content=inert(article.content),
        )
        return render_page(request, context, body)

    @app.get("/enter", name="enter")
    async def get_enter(request: Request, action: str = "login"):
        if action == "logout":
            token = request.cookies.get(SESSION_COOKIE_NAME)
            response = RedirectResponse("/", status_code=status.HTTP_303_SEE_OTHER)
            clear_session_cookie(response, context, token)
            return response

        if current_username(context, request.cookies) is not None:
            return _enter_page(request, "enter/already_logged_in")

        if action == "signup":
            return _enter_page(request, "enter/signup")
        return _enter_page(request, "enter/login")

    @app.post("/enter", name="enter_submit")
    async def post_enter(request: Request, action: str = ""):
        if current_username(context, request.cookies) is not None:
            return _enter_page(
                request,
                "enter/already_logged_in",
                status_code=status.HTTP_412_PRECONDITION_FAILED,
            )

        form = await parse_form(request)
        email = form.get("email", "").strip()
        password = form.get("password", "")

        if action == "signup":
            username = form.get("username", "").strip()
            if not username:
                return _enter_page(
                    request,
                    "enter/signup",
                    error="No username specified",
                    status_code=status.HTTP_400_BAD_REQUEST,
                )
            try:
                account = context.accounts.create(username, email, password)
            except ValueError as exc:
                return _enter_page(
                    request,
                    "enter/signup",
                    error=str(exc),
                    status_code=status.HTTP_400_BAD_REQUEST,
                )
            return _start_session(account.username)

        if action == "login":
            account = context.accounts.authenticate(email, password)
            if account is None:
                logger.warning("Failed login attempt for %s", email)
                return _enter_page(
                    request,
                    "enter/login",
                    error="Invalid email or password",
                    status_code=status.HTTP_401_UNAUTHORIZED,
                )
            logger.info("Account %s signed in", account.username)
            return _start_session(account.username)

        return _enter_page(
            request,
            "enter/login",
            error="no action specified",
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    @app.get("/profile", response_class=HTMLResponse, name="own_profile")
    async def own_profile(request: Request):
        username = current_username(context, request.cookies)
        if username is None:
            return render_page(request, context, templates["errors/not_logged_in"])
        return _render_profile(request, username)

    @app.get("/profile/{username}", response_class=HTMLResponse, name="profile")
    async def profile(username: str, request: Request):
        return _render_profile(request, username)

    @app.get("/publish", response_class=HTMLResponse, name="publish")
    async def get_publish(request: Request):
        if current_username(context, request.cookies) is None:
            return _publish_page(
                request,
                logged_in=False,
                error="You must be logged in to publish a post.",
            )
        return _publish_page(request, logged_in=True)

    @app.post("/publish", name="publish_submit")
    async def post_publish(request: Request):
        username = current_username(context, request.cookies)
        if username is None:
            return _publish_page(
                request,
                logged_in=False,
                error="You must be logged in to publish a post.",
                status_code=status.HTTP_401_UNAUTHORIZED,
            )

        form = await parse_form(request)
        title = form.get("title", "").strip()
        content = form.get("content", "").strip()
        if not title or not content:
            return _publish_page(
                request,
                logged_in=True,
                error="Both a title and content are required.",
                status_code=status.HTTP_400_BAD_REQUEST,
            )

        context.articles.create(title, content, username)
        return RedirectResponse("/", status_code=status.HTTP_303_SEE_OTHER)


__all__ = [
    "SESSION_COOKIE_NAME",
    "clear_session_cookie",
    "current_username",
    "escape",
    "format_date",
    "inert",
    "issue_session_cookie",
    "parse_form",
    "parse_uuid",
    "register_public_routes",
    "render_article_list",
    "render_not_found",
    "render_page",
]
