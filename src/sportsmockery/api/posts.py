"""Content API: posts, categories and authors."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Literal

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field, field_validator

from sportsmockery.api.deps import RepoDep
from sportsmockery.auth.deps import AdminUser
from sportsmockery.core.content import reading_time, segment_to_dict, slugify, split_shortcodes
from sportsmockery.db.models import AuthorRow, CategoryRow, PostRow

router = APIRouter(prefix="/api", tags=["content"])

PostStatus = Literal["draft", "published", "scheduled", "archived"]


class PostCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    slug: str | None = None
    content: str = ""
    excerpt: str | None = None
    featured_image: str | None = None
    status: PostStatus = "draft"
    category_id: int | None = None
    author_id: int | None = None
    seo_title: str | None = None
    seo_description: str | None = None
    published_at: datetime | None = None


class PostUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=500)
    slug: str | None = None
    content: str | None = None
    excerpt: str | None = None
    featured_image: str | None = None
    status: PostStatus | None = None
    category_id: int | None = None
    author_id: int | None = None
    seo_title: str | None = None
    seo_description: str | None = None
    published_at: datetime | None = None

    @field_validator("title", "slug", "content", "status")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


def _category_dict(category: CategoryRow | None) -> dict | None:
    if category is None:
        return None
    return {"id": category.id, "name": category.name, "slug": category.slug}


def _author_dict(author: AuthorRow | None) -> dict | None:
    if author is None:
        return None
    return {
        "id": author.id,
        "display_name": author.display_name,
        "slug": author.slug,
        "avatar_url": author.avatar_url,
        "bio": author.bio,
    }


def _post_summary(post: PostRow) -> dict:
    return {
        "id": post.id,
        "slug": post.slug,
        "title": post.title,
        "excerpt": post.excerpt,
        "featured_image": post.featured_image,
        "status": post.status,
        "views": post.views,
        "published_at": post.published_at.isoformat() if post.published_at else None,
        "category": _category_dict(post.category),
        "author": _author_dict(post.author),
    }


def _post_detail(post: PostRow) -> dict:
    return {
        **_post_summary(post),
        "content": post.content,
        "seo_title": post.seo_title,
        "seo_description": post.seo_description,
        "reading_time": reading_time(post.content or ""),
        "segments": [segment_to_dict(s) for s in split_shortcodes(post.content or "")],
    }


@router.get("/posts")
async def list_posts(
    repo: RepoDep,
    category: str | None = None,
    author_id: int | None = None,
    status: str = "published",
    search: str | None = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> dict:
    """Page of posts filtered by category, author, status and search text."""
    posts, total = await repo.list_posts(
        category_slug=category,
        author_id=author_id,
        status=status,
        search=search,
        limit=limit,
        offset=offset,
    )
    return {"posts": [_post_summary(p) for p in posts], "total": total, "limit": limit, "offset": offset}


@router.get("/posts/{slug}")
async def get_post(slug: str, repo: RepoDep) -> dict:
    """A published post, split into HTML and embed segments. Counts a view."""
    post = await repo.get_post_by_slug(slug, status="published")
    if post is None:
        raise HTTPException(404, "Post not found")
    await repo.increment_post_views(post)
    return {"post": _post_detail(post)}


@router.post("/posts", status_code=201)
async def create_post(body: PostCreateRequest, repo: RepoDep, _admin: AdminUser) -> dict:
    """Create a post (admin). The slug comes from the title when not given."""
    fields = body.model_dump(exclude={"title", "slug"})
    slug = slugify(body.slug or body.title)
    if not slug:
        raise HTTPException(400, "Could not derive a slug from the title")
    if await repo.slug_exists(slug):
        raise HTTPException(400, "A post with this slug already exists")
    if body.status == "published" and body.published_at is None:
        fields["published_at"] = datetime.now(UTC)
    post = await repo.create_post(body.title, slug, **fields)
    return {"post": _post_detail(post)}


@router.patch("/posts/{post_id}")
async def update_post(post_id: int, body: PostUpdateRequest, repo: RepoDep, _admin: AdminUser) -> dict:
    """Partial update (admin). Fields left out of the body are unchanged."""
    post = await repo.get_post(post_id)
    if post is None:
        raise HTTPException(404, "Post not found")

    fields = body.model_dump(exclude_unset=True)
    if "slug" in fields:
        fields["slug"] = slugify(fields["slug"] or "")
        if not fields["slug"]:
            raise HTTPException(400, "Slug cannot be empty")
        if await repo.slug_exists(fields["slug"], exclude_id=post.id):
            raise HTTPException(400, "A post with this slug already exists")
    if fields.get("status") == "published" and post.published_at is None and "published_at" not in fields:
        fields["published_at"] = datetime.now(UTC)

    post = await repo.update_post(post, fields)
    return {"post": _post_detail(post)}


@router.delete("/posts/{post_id}")
async def delete_post(post_id: int, repo: RepoDep, _admin: AdminUser) -> dict:
    """Delete a post (admin)."""
    post = await repo.get_post(post_id)
    if post is None:
        raise HTTPException(404, "Post not found")
    await repo.delete_post(post)
    return {"success": True}


@router.get("/categories")
async def list_categories(repo: RepoDep) -> dict:
    """All categories with their WordPress ids."""
    categories = await repo.list_categories()
    return {
        "categories": [
            {**_category_dict(c), "wp_id": c.wp_id, "parent_wp_id": c.parent_wp_id} for c in categories
        ]
    }


@router.get("/authors")
async def list_authors(repo: RepoDep) -> dict:
    authors = await repo.list_authors()
    return {"authors": [{**_author_dict(a), "role": a.role} for a in authors]}
