"""Administration area: account search, permission changes, deletion."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Query, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse

from .articles import format_for_description
from .context import SiteContext
from .models import Account, Article, ArticleStatus, Permission
from .security import PermissionGuard, guard
from .web import (
    escape,
    format_date,
    parse_form,
    parse_uuid,
    render_article_list,
    render_not_found,
    render_page,
)

logger = logging.getLogger("newsroom.admin")

SEARCH_TYPES = {"User", "Article"}


def create_admin_app(context: SiteContext) -> PermissionGuard:
    """Return the admin sub-application, wrapped in an Admin-only guard."""

    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)
    register_admin_routes(app, context)

    async def not_found(request: Request, exc: Exception) -> HTMLResponse:
        return render_not_found(request, context)

    app.add_exception_handler(status.HTTP_404_NOT_FOUND, not_found)
    return guard(Permission.ADMIN, context=context)(app)


def register_admin_routes(app: FastAPI, context: SiteContext) -> None:
    templates = context.templates

    def _render_user_result(account: Account) -> str:
        return templates["admin/user_result"].render(
            username=escape(account.username),
            email=escape(account.email),
            rank=account.permission.value,
            created_at=format_date(account.created_at),
        )

    def _render_article_result(article: Article) -> str:
        return templates["admin/article_result"].render(
            uuid=str(article.uuid),
            title=escape(article.title),
            author=escape(article.author),
            date=format_date(article.created_at),
            description=escape(format_for_description(article.content)),
            status=article.status.value,
        )

    def _render_panel(query_type: str, term: str) -> str:
        if query_type == "User":
            results = [_render_user_result(account) for account in context.accounts.search(term)]
        else:
            results = [_render_article_result(article) for article in context.articles.search(term)]
        body = "<br />".join(results) or "No results"
        return f'<div id="results">{body}</div>'

    def _render_admin_page(request: Request, *, error: str = "", panel: str = "") -> HTMLResponse:
        body = templates["admin/index"].render(error=escape(error), panel=panel)
        return render_page(request, context, body)

    def _render_edit_profile(
        request: Request,
        username: str,
        *,
        error: Optional[str] = None,
        status_code: int = status.HTTP_200_OK,
    ) -> HTMLResponse:
        account = context.accounts.get(username)
        if account is None:
            return render_page(
                request,
                context,
                templates["errors/account_not_found"],
                status_code=status.HTTP_404_NOT_FOUND,
            )

        articles = [
            article for article in context.articles.newest_first() if article.author == username
        ]
        selectors = {
            f"{permission.value.lower()}_selected": account.permission is permission
            for permission in Permission
        }
        body = templates["admin/edit_profile"].render(
            username=escape(account.username),
            email=escape(account.email),
            rank=account.permission.value,
            created_at=format_date(account.created_at),
            article_count=len(articles),
            articles=render_article_list(context, articles) or "No articles found",
            error=escape(error or ""),
            **selectors,
        )
        return render_page(request, context, body, status_code=status_code)

    @app.get("/", response_class=HTMLResponse, name="admin_home")
    async def admin_home(
        request: Request,
        query_type: Optional[str] = Query(default=None, alias="type"),
        query: Optional[str] = None,
    ):
        if query_type is None or query is None:
            return _render_admin_page(request)
        if query_type not in SEARCH_TYPES:
            return _render_admin_page(request, error=f"Unknown search type '{query_type}'")
        return _render_admin_page(request, panel=_render_panel(query_type, query))

    @app.get("/profile/{username}", response_class=HTMLResponse, name="admin_profile")
    async def get_edit_profile(username: str, request: Request):
        return _render_edit_profile(request, username)

    @app.post("/profile/{username}", name="admin_profile_submit")
    async def post_edit_profile(username: str, request: Request):
        form = await parse_form(request)

        account = context.accounts.get(username)
        if account is None:
            return _render_edit_profile(request, username)
        if account.permission is Permission.ADMIN:
            logger.warning("Refused to modify admin account %s", username)
            return _render_edit_profile(
                request,
                username,
                error="Cannot edit admin account",
                status_code=status.HTTP_400_BAD_REQUEST,
            )

        action = form.get("action", "")
        if action == "Delete":
            try:
                context.accounts.delete(username)
            except KeyError:
                return _render_edit_profile(request, username, error="Account not found")
            context.sessions.invalidate_account(username)
            return RedirectResponse("/admin/", status_code=status.HTTP_303_SEE_OTHER)

        if action == "Edit":
            rank = form.get("rank")
            if rank:
                try:
                    permission = Permission.parse(rank)
                except ValueError as exc:
                    return _render_edit_profile(
                        request,
                        username,
                        error=str(exc),
                        status_code=status.HTTP_400_BAD_REQUEST,
                    )
                try:
                    context.accounts.set_permission(username, permission)
                except KeyError:
                    return _render_edit_profile(request, username, error="Account not found")
            return RedirectResponse("/admin/", status_code=status.HTTP_303_SEE_OTHER)

        return _render_edit_profile(
            request,
            username,
            error="Unknown action",
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    def _render_edit_article(
        request: Request,
        article: Article,
        *,
        error: str = "",
        status_code: int = status.HTTP_200_OK,
    ) -> HTMLResponse:
        body = templates["admin/edit_article"].render(
            uuid=str(article.uuid),
            title=escape(article.title),
            author=escape(article.author),
            date=format_date(article.created_at),
            status=article.status.value,
            content=escape(article.content),
            error=escape(error),
            published=article.is_published,
        )
        return render_page(request, context, body, status_code=status_code)

    def _find_article(article_id: str) -> Optional[Article]:
        uuid = parse_uuid(article_id)
        return context.articles.get(uuid) if uuid is not None else None

    @app.get("/article/{article_id}", response_class=HTMLResponse, name="admin_article")
    async def get_edit_article(article_id: str, request: Request):
        article = _find_article(article_id)
        if article is None:
            return render_not_found(request, context)
        return _render_edit_article(request, article)

    @app.post("/article/{article_id}", name="admin_article_submit")
    async def post_edit_article(article_id: str, request: Request):
        article = _find_article(article_id)
        if article is None:
            return render_not_found(request, context)

        form = await parse_form(request)
        action = form.get("action", "")
        if action == "Delete":
            context.articles.delete(article.uuid)
            return RedirectResponse("/admin/", status_code=status.HTTP_303_SEE_OTHER)

        if action != "Edit":
            return _render_edit_article(
                request, article, error="Unknown action", status_code=status.HTTP_400_BAD_REQUEST
            )

        title = form.get("title")
        content = form.get("content")
        if title is None or content is None:
            return _render_edit_article(
                request, article, error="invalid form data", status_code=status.HTTP_400_BAD_REQUEST
            )
        update = {"title": title.strip(), "content": content.strip()}
        if form.get("status"):
            try:
                update["status"] = ArticleStatus(form["status"])
            except ValueError:
                return _render_edit_article(
                    request,
                    article,
                    error=f"Unknown status '{form['status']}'",
                    status_code=status.HTTP_400_BAD_REQUEST,
                )

        context.articles.save(article.model_copy(update=update))
        return RedirectResponse(f"/admin/article/{article.uuid}", status_code=status.HTTP_303_SEE_OTHER)


__all__ = ["create_admin_app", "register_admin_routes"]
