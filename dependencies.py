"""
Dependency wiring for the FastAPI app.

The store and token service are built once per app in `main.create_app`
and kept on `app.state`.
"""

from fastapi import Depends, Request

from database import DocumentStore
from security import TokenService
from services import BlogService, ContactService, ProjectService, UserService


def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


def get_token_service(request: Request) -> TokenService:
    return request.app.state.tokens


def get_user_service(
    store: DocumentStore = Depends(get_store),
    tokens: TokenService = Depends(get_token_service),
) -> UserService:
    return UserService(store, tokens)


def get_blog_service(store: DocumentStore = Depends(get_store)) -> BlogService:
    return BlogService(store)


def get_project_service(store: DocumentStore = Depends(get_store)) -> ProjectService:
    return ProjectService(store)


def get_contact_service(store: DocumentStore = Depends(get_store)) -> ContactService:
    return ContactService(store)
