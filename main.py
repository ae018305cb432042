import logging
import traceback
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth import get_current_user
from config import Settings, get_settings
from database import DocumentStore, create_store
from dependencies import (
    get_blog_service,
    get_contact_service,
    get_project_service,
    get_store,
    get_user_service,
)
from errors import ApiError
from schemas import (
    BlogPostCreate,
    BlogPostUpdate,
    CommentCreate,
    ContactCreate,
    LoginRequest,
    ProjectCreate,
    ProjectUpdate,
    RegisterRequest,
)
from security import TokenService
from services import BlogService, ContactService, ProjectService, UserService

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

router = APIRouter()
health = APIRouter()

# Helpers

def ok(data: Any = None, message: Optional[str] = None, count: Optional[int] = None) -> dict:
    body = {"success": True}
    if message is not None:
        body["message"] = message
    if count is not None:
        body["count"] = count
    if data is not None:
        body["data"] = data
    return body


def listing(items: list) -> dict:
    return ok(items, count=len(items))


def failure(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message, **extra})


# Health
@health.get("/")
def read_root():
    return {"message": "Portfolio & Blog API", "version": API_VERSION, "status": "running"}

@health.get("/test")
def test_database(request: Request, store: DocumentStore = Depends(get_store)):
    settings = request.app.state.settings
    status = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_name": settings.database_name,
        "collections": []
    }
    try:
        store.ping()
        status["database"] = "✅ Connected"
        status["collections"] = store.list_collection_names()
    except Exception:
        logger.exception("Store diagnostic failed")
        status["database"] = "❌ Error"
    return status

# Users
@router.post("/users/register", status_code=201)
def register(payload: RegisterRequest, users: UserService = Depends(get_user_service)):
    return ok(users.register(payload))

@router.post("/users/login")
def login(payload: LoginRequest, users: UserService = Depends(get_user_service)):
    return ok(users.login(payload))

@router.get("/users/me")
def me(user: dict = Depends(get_current_user)):
    return ok(user)

# Projects
@router.get("/projects")
def list_projects(projects: ProjectService = Depends(get_project_service)):
    return listing(projects.list())

@router.get("/projects/{project_id}")
def get_project(project_id: str, projects: ProjectService = Depends(get_project_service)):
    return ok(projects.get(project_id))

@router.post("/projects", status_code=201)
def create_project(
    payload: ProjectCreate,
    user: dict = Depends(get_current_user),
    projects: ProjectService = Depends(get_project_service),
):
    return ok(projects.create(payload, user["id"]))

@router.put("/projects/{project_id}")
def update_project(
    project_id: str,
    payload: ProjectUpdate,
    user: dict = Depends(get_current_user),
    projects: ProjectService = Depends(get_project_service),
):
    return ok(projects.update(project_id, payload, user["id"]))

@router.delete("/projects/{project_id}")
def delete_project(
    project_id: str,
    user: dict = Depends(get_current_user),
    projects: ProjectService = Depends(get_project_service),
):
    projects.delete(project_id, user["id"])
    return ok(message="Project deleted successfully")

# Blog
@router.get("/blog")
def list_posts(blog: BlogService = Depends(get_blog_service)):
    return listing(blog.list())

@router.get("/blog/{post_id}")
def get_post(post_id: str, blog: BlogService = Depends(get_blog_service)):
    return ok(blog.get(post_id))

@router.post("/blog", status_code=201)
def create_post(
    payload: BlogPostCreate,
    user: dict = Depends(get_current_user),
    blog: BlogService = Depends(get_blog_service),
):
    return ok(blog.create(payload, user["id"]))

@router.put("/blog/{post_id}")
def update_post(
    post_id: str,
    payload: BlogPostUpdate,
    user: dict = Depends(get_current_user),
    blog: BlogService = Depends(get_blog_service),
):
    return ok(blog.update(post_id, payload, user["id"]))

@router.delete("/blog/{post_id}")
def delete_post(
    post_id: str,
    user: dict = Depends(get_current_user),
    blog: BlogService = Depends(get_blog_service),
):
    blog.delete(post_id, user["id"])
    return ok(message="Blog post and associated comments deleted successfully")

@router.get("/blog/{post_id}/comments")
def list_comments(post_id: str, blog: BlogService = Depends(get_blog_service)):
    return listing(blog.list_comments(post_id))

@router.post("/blog/{post_id}/comments", status_code=201)
def create_comment(
    post_id: str,
    payload: CommentCreate,
    user: dict = Depends(get_current_user),
    blog: BlogService = Depends(get_blog_service),
):
    return ok(blog.create_comment(post_id, payload, user["id"]))

# Contact
@router.post("/contact", status_code=201)
def submit_contact(payload: ContactCreate, contact: ContactService = Depends(get_contact_service)):
    message = contact.create(payload)
    return ok(message, message="Thank you for your message! We will get back to you soon.")

@router.get("/contact")
def list_messages(
    user: dict = Depends(get_current_user),
    contact: ContactService = Depends(get_contact_service),
):
    return listing(contact.list())


# Error translation

def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        return failure(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        if not errors or any(err.get("type") == "missing" for err in errors):
            return failure(400, "Please provide all required fields")
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        return failure(400, f"{field}: {first['msg']}" if field else first["msg"])

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return failure(404, "Route not found")
        return failure(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        settings = request.app.state.settings
        if settings.is_production:
            return failure(500, "Internal Server Error")
        return failure(
            500,
            str(exc) or "Internal Server Error",
            trace=traceback.format_exception(type(exc), exc, exc.__traceback__),
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    store = app.state.store
    try:
        store.ping()
        store.ensure_indexes()
    except Exception as e:
        logger.critical("Document store connection failed: %s", e)
        raise SystemExit(1)
    logger.info("Document store connected")
    yield


def create_app(settings: Optional[Settings] = None, store: Optional[DocumentStore] = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level)

    app = FastAPI(title="Portfolio & Blog API", version=API_VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store if store is not None else create_store(settings)
    app.state.tokens = TokenService.from_settings(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.client_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    install_error_handlers(app)
    app.include_router(health)
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=get_settings().port)
