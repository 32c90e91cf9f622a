import json
import logging
import math
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .auth import Identity
from .errors import AuthRequired, Conflict, NotFound, ValidationError
from .models import Post
from .notifier import PublishNotifier
from .sanitize import sanitize_html
from .schemas import Pagination, PostCreate, PostOut, PostPage, PostSummary, PostUpdate, TagPage
from .slug import slugify

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20
MAX_LIMIT = 100
MAX_BIGINT = 2 ** 63 - 1
# keeps the OFFSET inside a signed 64-bit integer
MAX_PAGE = MAX_BIGINT // MAX_LIMIT


def clamp_paging(page: int, limit: int):
    return min(MAX_PAGE, max(1, page)), min(MAX_LIMIT, max(1, limit))


def tag_pattern(tag: str) -> str:
    """LIKE pattern matching one whole element of a JSON-encoded tag array."""
    token = json.dumps(tag, ensure_ascii=False)
    token = token.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{token}%"


def _slug_for(title: str) -> str:
    slug = slugify(title)
    if not slug:
        raise ValidationError("Title must contain at least one letter or digit")
    return slug


class PostRepository:
    """Queries and mutations over the posts table for one request's session."""

    def __init__(self, session: Session, notifier: Optional[PublishNotifier] = None):
        self.session = session
        self.notifier = notifier

    # ---------- Reads ----------
    def list(self, status: Optional[str] = None, tag: Optional[str] = None,
             page: int = 1, limit: int = DEFAULT_LIMIT,
             identity: Optional[Identity] = None) -> PostPage:
        conditions = []
        if status in ("draft", "all"):
            if identity is None:
                raise AuthRequired("Authentication required to view drafts")
            if status == "draft":
                conditions.append(Post.status == "draft")
        else:
            conditions.append(Post.status == "published")
        if tag:
            conditions.append(Post.tags.like(tag_pattern(tag), escape="\\"))
        return self._page(conditions, page, limit)

    def list_by_tag(self, tag: str, page: int = 1, limit: int = DEFAULT_LIMIT) -> TagPage:
        result = self._page(
            [Post.status == "published", Post.tags.like(tag_pattern(tag), escape="\\")],
            page, limit,
        )
        return TagPage(tag=tag, posts=result.posts, pagination=result.pagination)

    def get(self, post_id: int) -> PostOut:
        # No status filter here; editor preview links rely on reading drafts by id.
        return PostOut.from_orm_post(self._load(post_id))

    def get_by_slug(self, slug: str) -> PostOut:
        stmt = select(Post).where(Post.slug == slug, Post.status == "published")
        p = self.session.execute(stmt).scalars().first()
        if not p:
            raise NotFound("Post not found")
        return PostOut.from_orm_post(p)

    # ---------- Writes ----------
    def create(self, data: PostCreate) -> PostOut:
        if not data.title or not data.content:
            raise ValidationError("Title and content are required")
        p = Post(
            title=data.title,
            slug=_slug_for(data.title),
            content=sanitize_html(data.content),
            status=data.status or "draft",
            tags=json.dumps(data.tags or [], ensure_ascii=False),
            meta_description=data.meta_description or "",
            og_image=data.og_image or "",
        )
        self.session.add(p)
        self._commit()
        self.session.refresh(p)
        logger.info(f"Created post {p.id} ({p.status})")
        self._published(p)
        return PostOut.from_orm_post(p)

    def update(self, post_id: int, data: PostUpdate) -> PostOut:
        changes = data.changes()
        if not changes:
            raise ValidationError("No fields to update")
        p = self._load(post_id)
        if "title" in changes:
            p.title = changes["title"]
            p.slug = _slug_for(changes["title"])
        if "content" in changes:
            p.content = sanitize_html(changes["content"])
        if "tags" in changes:
            p.tags = json.dumps(changes["tags"], ensure_ascii=False)
        for field in ("status", "meta_description", "og_image"):
            if field in changes:
                setattr(p, field, changes[field])
        self._commit()
        self.session.refresh(p)
        logger.info(f"Updated post {p.id} ({', '.join(sorted(changes))})")
        self._published(p)
        return PostOut.from_orm_post(p)

    def delete(self, post_id: int) -> None:
        p = self._load(post_id)
        self.session.delete(p)
        self.session.commit()
        logger.info(f"Deleted post {post_id}")

    # ---------- Helpers ----------
    def _load(self, post_id: int) -> Post:
        if not 0 < post_id <= MAX_BIGINT:
            raise NotFound("Post not found")
        p = self.session.get(Post, post_id)
        if not p:
            raise NotFound("Post not found")
        return p

    def _commit(self) -> None:
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise Conflict("A post with this title already exists")

    def _published(self, p: Post) -> None:
        if p.status == "published" and self.notifier is not None:
            self.notifier.notify()

    def _page(self, conditions, page: int, limit: int) -> PostPage:
        page, limit = clamp_paging(page, limit)
        total = self.session.execute(
            select(func.count()).select_from(Post).where(*conditions)
        ).scalar_one()
        stmt = (
            select(Post).where(*conditions)
            .order_by(Post.created_at.desc(), Post.id.desc())
            .limit(limit).offset((page - 1) * limit)
        )
        posts = self.session.execute(stmt).scalars().all()
        return PostPage(
            posts=[PostSummary.from_orm_post(p) for p in posts],
            pagination=Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit)),
        )
