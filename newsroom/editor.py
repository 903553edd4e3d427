"""Editor area: review queue, article edits and publishing."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse

from .context import SiteContext
from .models import Article, ArticleStatus, Permission
from .security import PermissionGuard, guard
from .web import escape, format_date, parse_form, parse_uuid, render_article_list, render_not_found, render_page

logger = logging.getLogger("newsroom.editor")


def create_editor_app(context: SiteContext) -> PermissionGuard:
    """Return the editor sub-application, wrapped in an Editor-only guard."""

    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)
    register_editor_routes(app, context)

    async def not_found(request: Request, exc: Exception) -> HTMLResponse:
        return render_not_found(request, context)

    app.add_exception_handler(status.HTTP_404_NOT_FOUND, not_found)
    return guard(Permission.EDITOR, context=context)(app)


def register_editor_routes(app: FastAPI, context: SiteContext) -> None:
    templates = context.templates

    def _render_edit_article(
        request: Request,
        article: Article,
        *,
        error: Optional[str] = None,
        status_code: int = status.HTTP_200_OK,
    ) -> HTMLResponse:
        body = templates["editor/edit_article"].render(
            title=escape(article.title),
            author=escape(article.author),
            date=format_date(article.created_at),
            content=escape(article.content),
            uuid=str(article.uuid),
            error=escape(error or ""),
            published=article.is_published,
        )
        return render_page(request, context, body, status_code=status_code)

    @app.get("/", response_class=HTMLResponse, name="editor_home")
    async def review_queue(request: Request):
        articles = context.articles.newest_first(status=ArticleStatus.NEEDS_REVIEW)
        body = templates["editor/index"].render(
            articles=render_article_list(context, articles, template="editor/article_small")
            or "Nothing is waiting for review",
        )
        return render_page(request, context, body)

    @app.get("/article/{article_id}", response_class=HTMLResponse, name="editor_article")
    async def get_edit_article(article_id: str, request: Request):
        uuid = parse_uuid(article_id)
        article = context.articles.get(uuid) if uuid is not None else None
        if article is None:
            return render_not_found(request, context)
        return _render_edit_article(request, article)

    @app.post("/article/{article_id}", name="editor_article_submit")
    async def post_edit_article(article_id: str, request: Request):
        uuid = parse_uuid(article_id)
        article = context.articles.get(uuid) if uuid is not None else None
        if article is None:
            return render_not_found(request, context)

        form = await parse_form(request)
        title = form.get("title")
        content = form.get("content")
        if title is None or content is None:
            return _render_edit_article(
                request,
                article,
                error="invalid form data",
                status_code=status.HTTP_400_BAD_REQUEST,
            )

        context.articles.save(
            article.model_copy(update={"title": title.strip(), "content": content.strip()})
        )
        return RedirectResponse(f"/editor/article/{article.uuid}", status_code=status.HTTP_303_SEE_OTHER)

    @app.post("/publish", name="editor_publish")
    async def publish_article(request: Request):
        form = await parse_form(request)
        uuid = parse_uuid(form.get("uuid", ""))
        article = context.articles.get(uuid) if uuid is not None else None
        if article is None:
            return render_not_found(request, context)

        context.articles.save(article.model_copy(update={"status": ArticleStatus.PUBLISHED}))
        logger.info("Published article %s", article.uuid)
        return RedirectResponse(f"/article/{article.uuid}", status_code=status.HTTP_303_SEE_OTHER)


__all__ = ["create_editor_app", "register_editor_routes"]
