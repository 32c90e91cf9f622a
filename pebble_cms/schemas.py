import json
import re
from typing import List, Literal, Optional

from pydantic import BaseModel, field_validator

from .models import Post

Status = Literal["draft", "published"]

PREVIEW_LENGTH = 100
_TAG_RE = re.compile(r"<[^>]*>")


def parse_tags(raw: Optional[str]) -> List[str]:
    try:
        tags = json.loads(raw or "[]")
    except ValueError:
        return []
    return tags if isinstance(tags, list) else []


def content_preview(html: str) -> str:
    text = _TAG_RE.sub("", html or "").strip()
    return text[:PREVIEW_LENGTH] + "..." if len(text) > PREVIEW_LENGTH else text


# ---------- Auth ----------
class LoginIn(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


class TokenOut(BaseModel):
    token: str


# ---------- Posts ----------
class PostFields(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    status: Optional[Status] = None
    tags: Optional[List[str]] = None
    meta_description: Optional[str] = None
    og_image: Optional[str] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v):
        if v is not None and not v.strip():
            raise ValueError("Title cannot be empty")
        return v


class PostCreate(PostFields):
    pass


class PostUpdate(PostFields):
    def changes(self) -> dict:
        """Fields the client actually sent; explicit nulls count as absent."""
        return {k: v for k, v in self.model_dump(exclude_unset=True).items() if v is not None}


class PostOut(BaseModel):
    id: int
    title: str
    slug: str
    content: str
    status: str
    tags: List[str]
    meta_description: str
    og_image: str
    created_at: str
    updated_at: str

    @classmethod
    def from_orm_post(cls, p: Post):
        return cls(
            id=p.id, title=p.title, slug=p.slug, content=p.content, status=p.status,
            tags=parse_tags(p.tags), meta_description=p.meta_description or "",
            og_image=p.og_image or "", created_at=p.created_at.isoformat(),
            updated_at=p.updated_at.isoformat()
        )


class PostSummary(BaseModel):
    id: int
    title: str
    slug: str
    status: str
    tags: List[str]
    meta_description: str
    og_image: str
    content_preview: str
    created_at: str
    updated_at: str

    @classmethod
    def from_orm_post(cls, p: Post):
        return cls(
            id=p.id, title=p.title, slug=p.slug, status=p.status,
            tags=parse_tags(p.tags), meta_description=p.meta_description or "",
            og_image=p.og_image or "", content_preview=content_preview(p.content),
            created_at=p.created_at.isoformat(), updated_at=p.updated_at.isoformat()
        )


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class PostPage(BaseModel):
    posts: List[PostSummary]
    pagination: Pagination


class TagPage(PostPage):
    tag: str


class MessageOut(BaseModel):
    message: str


class UploadOut(BaseModel):
    url: str
