import argparse, getpass, os, logging, uvicorn
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Iterator, List, Optional

from fastapi import FastAPI, Depends, File, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .auth import Identity, TokenService, hash_password, optional_identity, require_identity, verify_credentials
from .config import Settings, configure_logging
from .errors import AuthRequired, ValidationError, register_error_handlers
from .models import Base
from .notifier import PublishNotifier
from .repository import DEFAULT_LIMIT, PostRepository
from .schemas import LoginIn, MessageOut, PostCreate, PostOut, PostPage, PostUpdate, TagPage, TokenOut, UploadOut
from .uploads import ObjectStore, S3ObjectStore, UploadHandler

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Origin-Agent-Cluster": "?1",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-XSS-Protection": "0",
}


def make_engine(database_url: str) -> Engine:
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    return create_engine(database_url, connect_args=connect_args)


# ---------- Request-scoped dependencies ----------
def get_session(request: Request) -> Iterator[Session]:
    with request.app.state.session_factory() as s:
        yield s


def get_posts(request: Request, session: Session = Depends(get_session)) -> PostRepository:
    return PostRepository(session, request.app.state.notifier)


def get_uploads(request: Request) -> UploadHandler:
    return request.app.state.uploads


def create_app(settings: Settings, *, engine: Optional[Engine] = None,
               store: Optional[ObjectStore] = None,
               notifier: Optional[PublishNotifier] = None) -> FastAPI:
    """Build the API with every collaborator wired from one Settings object."""
    engine = engine or make_engine(settings.database_url)
    Base.metadata.create_all(engine)
    executor = None
    if notifier is None:
        executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="publish-webhook")
        notifier = PublishNotifier(settings.deploy_webhook_url, executor, settings.webhook_timeout)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if executor is not None:
            executor.shutdown(wait=False)
        engine.dispose()

    app = FastAPI(title="Pebble CMS API", lifespan=lifespan)
    app.state.settings = settings
    app.state.session_factory = sessionmaker(engine, expire_on_commit=False)
    app.state.tokens = TokenService(settings.jwt_secret, timedelta(days=settings.token_ttl_days))
    app.state.notifier = notifier
    app.state.uploads = UploadHandler(
        store if store is not None else S3ObjectStore.from_settings(settings),
        settings.public_base_url,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_methods=["*"], allow_headers=["*"]
    )

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    register_error_handlers(app, SECURITY_HEADERS)

    # ---------- Auth ----------
    @app.post("/api/auth/login", response_model=TokenOut)
    def login(data: LoginIn):
        if not data.username or not data.password:
            raise ValidationError("Username and password are required")
        if not verify_credentials(settings, data.username, data.password):
            logger.warning(f"Failed login for {data.username!r}")
            raise AuthRequired("Invalid credentials")
        logger.info(f"{data.username} logged in")
        return TokenOut(token=app.state.tokens.issue(data.username))

    # ---------- Posts ----------
    @app.get("/api/posts", response_model=PostPage)
    def list_posts(status: Optional[str] = None, tag: Optional[str] = None,
                   page: int = 1, limit: int = DEFAULT_LIMIT,
                   identity: Optional[Identity] = Depends(optional_identity),
                   posts: PostRepository = Depends(get_posts)):
        return posts.list(status=status, tag=tag, page=page, limit=limit, identity=identity)

    @app.get("/api/posts/by-slug/{slug}", response_model=PostOut)
    def get_post_by_slug(slug: str, posts: PostRepository = Depends(get_posts)):
        return posts.get_by_slug(slug)

    @app.get("/api/posts/by-tag/{tag}", response_model=TagPage)
    def list_posts_by_tag(tag: str, page: int = 1, limit: int = DEFAULT_LIMIT,
                          posts: PostRepository = Depends(get_posts)):
        return posts.list_by_tag(tag, page=page, limit=limit)

    @app.get("/api/posts/{post_id}", response_model=PostOut)
    def get_post(post_id: int, posts: PostRepository = Depends(get_posts)):
        return posts.get(post_id)

    @app.post("/api/posts", response_model=PostOut, status_code=201)
    def create_post(data: PostCreate, _user: Identity = Depends(require_identity),
                    posts: PostRepository = Depends(get_posts)):
        return posts.create(data)

    @app.put("/api/posts/{post_id}", response_model=PostOut)
    def update_post(post_id: int, data: PostUpdate, _user: Identity = Depends(require_identity),
                    posts: PostRepository = Depends(get_posts)):
        return posts.update(post_id, data)

    @app.delete("/api/posts/{post_id}", response_model=MessageOut)
    def delete_post(post_id: int, _user: Identity = Depends(require_identity),
                    posts: PostRepository = Depends(get_posts)):
        posts.delete(post_id)
        return MessageOut(message="Post deleted")

    # ---------- Uploads ----------
    @app.post("/api/uploads", response_model=UploadOut)
    def upload_image(image: Optional[UploadFile] = File(None),
                     _user: Identity = Depends(require_identity),
                     uploads: UploadHandler = Depends(get_uploads)):
        return UploadOut(url=uploads.handle(image))

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(prog="pebble-cms", description="Pebble CMS API")
    commands = parser.add_subparsers(dest="command")
    commands.add_parser("serve", help="Run the API server (default)")
    hasher = commands.add_parser("hash-password", help="Print a bcrypt hash for ADMIN_PASSWORD_HASH / EDITOR_PASSWORD_HASH")
    hasher.add_argument("password", nargs="?", help="Password to hash; prompted for when omitted")
    args = parser.parse_args(argv)

    if args.command == "hash-password":
        password = args.password or getpass.getpass("Password: ")
        if not password:
            parser.error("password cannot be empty")
        print(hash_password(password))
        return

    settings = Settings()
    configure_logging(settings)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=int(os.getenv("PORT", 8080)))


if __name__ == "__main__":
    main()
