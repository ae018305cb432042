"""
Resource services: accounts, blog posts with comments, projects and the
contact inbox.

Services take a document store at construction, raise `errors.ApiError`
subclasses and return plain dicts ready to be put in a response envelope.
"""

import logging
from typing import Dict, Iterable, List, Optional

from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError, PyMongoError

from database import Document, DocumentStore
from errors import Conflict, Forbidden, InvalidCredentials, InvalidInput, NotFound
from schemas import (
    BlogPost,
    BlogPostCreate,
    BlogPostUpdate,
    Comment,
    CommentCreate,
    ContactCreate,
    ContactMessage,
    LoginRequest,
    Project,
    ProjectCreate,
    ProjectUpdate,
    RegisterRequest,
    User,
    collection_name,
    normalize_email,
)
from security import TokenService, hash_password, is_owner, verify_password

logger = logging.getLogger(__name__)

USERS = collection_name(User)
POSTS = collection_name(BlogPost)
COMMENTS = collection_name(Comment)
PROJECTS = collection_name(Project)
MESSAGES = collection_name(ContactMessage)


# Helpers

def _missing(*values) -> bool:
    return any(value is None or (isinstance(value, str) and not value.strip()) for value in values)


def _invalid(exc: ValidationError, message: Optional[str] = None) -> InvalidInput:
    if message:
        return InvalidInput(message)
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ()))
    return InvalidInput(f"{field}: {first['msg']}" if field else first["msg"])


def _patch(payload, required: Iterable[str] = ()) -> dict:
    update = {k: v for k, v in payload.model_dump().items() if v is not None}
    for field in required:
        if field in update and _missing(update[field]):
            raise InvalidInput(f"{field} cannot be empty")
    if "title" in update:
        update["title"] = update["title"].strip()
    return update


def public_user(doc: Optional[Document]) -> Optional[Document]:
    """User record safe to hand out: the password hash is dropped."""
    if not doc:
        return doc
    return {k: v for k, v in doc.items() if k != "password_hash"}


def join_users(
    store: DocumentStore,
    docs: List[Document],
    ref_field: str,
    target: str,
    fields: Iterable[str] = ("username", "email"),
) -> List[Document]:
    """Attach a read-only summary of the referenced user to each doc."""
    fields = tuple(fields)
    summaries: Dict[str, Optional[dict]] = {}
    for doc in docs:
        user_id = doc.get(ref_field)
        if user_id not in summaries:
            user = store.get(USERS, user_id) if user_id else None
            summaries[user_id] = (
                {"id": user["id"], **{f: user.get(f) for f in fields}} if user else None
            )
        doc[target] = summaries[user_id]
    return docs


class UserService:
    def __init__(self, store: DocumentStore, tokens: TokenService):
        self.store = store
        self.tokens = tokens

    def _session(self, user: Document) -> dict:
        return {
            "id": user["id"],
            "username": user["username"],
            "email": user["email"],
            "token": self.tokens.issue(user["id"]),
        }

    def register(self, payload: RegisterRequest) -> dict:
        if _missing(payload.username, payload.email, payload.password):
            raise InvalidInput("Please provide all required fields")

        try:
            user = User(
                username=payload.username.strip(),
                email=normalize_email(payload.email),
                password_hash=hash_password(payload.password),
            )
        except ValidationError as exc:
            raise _invalid(exc)

        existing = self.store.find_one(
            USERS, {"$or": [{"email": user.email}, {"username": user.username}]}
        )
        if existing:
            raise Conflict()

        try:
            created = self.store.insert(USERS, user)
        except DuplicateKeyError:
            raise Conflict()

        logger.info("Registered user %s", created["id"])
        return self._session(created)

    def login(self, payload: LoginRequest) -> dict:
        if _missing(payload.email, payload.password):
            raise InvalidInput("Please provide email and password")

        try:
            email = normalize_email(payload.email)
        except ValidationError:
            email = None
        user = self.store.find_one(USERS, {"email": email}) if email else None
        # Same failure for unknown, malformed email and wrong password.
        if not user or not verify_password(payload.password, user.get("password_hash")):
            logger.info("Failed login attempt")
            raise InvalidCredentials()
        return self._session(user)

    def get(self, user_id: str) -> Optional[Document]:
        return public_user(self.store.get(USERS, user_id))


class BlogService:
    def __init__(self, store: DocumentStore):
        self.store = store

    def _load(self, post_id: str) -> Document:
        post = self.store.get(POSTS, post_id)
        if not post:
            raise NotFound("Blog post not found")
        return post

    def _owned(self, post_id: str, caller_id: str, action: str) -> Document:
        post = self._load(post_id)
        if not is_owner(post["author_id"], caller_id):
            raise Forbidden(f"Not authorized to {action} this blog post")
        return post

    def _with_author(self, post: Document) -> Document:
        return join_users(self.store, [post], "author_id", "author")[0]

    def _comments(self, post_id: str) -> List[Document]:
        comments = self.store.find(COMMENTS, {"post_id": post_id})
        return join_users(self.store, comments, "author_id", "author", fields=("username",))

    def list(self) -> List[Document]:
        return join_users(self.store, self.store.find(POSTS), "author_id", "author")

    def get(self, post_id: str) -> Document:
        post = self._with_author(self._load(post_id))
        post["comments"] = self._comments(post["id"])
        return post

    def create(self, payload: BlogPostCreate, author_id: str) -> Document:
        if _missing(payload.title, payload.content):
            raise InvalidInput("Please provide a title and content")
        try:
            post = BlogPost(
                title=payload.title.strip(),
                content=payload.content,
                excerpt=payload.excerpt or "",
                tags=payload.tags,
                published=payload.published,
                author_id=author_id,
            )
        except ValidationError as exc:
            raise _invalid(exc)
        return self._with_author(self.store.insert(POSTS, post))

    def update(self, post_id: str, patch: BlogPostUpdate, caller_id: str) -> Document:
        post = self._owned(post_id, caller_id, "update")
        update = _patch(patch, required=("title", "content"))
        if update:
            post = self.store.update(POSTS, post["id"], update)
            if not post:
                raise NotFound("Blog post not found")
        return self._with_author(post)

    def delete(self, post_id: str, caller_id: str) -> None:
        post = self._owned(post_id, caller_id, "delete")
        self.store.delete(POSTS, post["id"])
        # Not atomic with the post delete: a failure here leaves orphan comments.
        try:
            removed = self.store.delete_many(COMMENTS, {"post_id": post["id"]})
        except PyMongoError:
            logger.exception("Blog post %s deleted but its comments were not", post["id"])
            return
        logger.info("Deleted blog post %s and %d comments", post["id"], removed)

    def list_comments(self, post_id: str) -> List[Document]:
        return self._comments(post_id)

    def create_comment(self, post_id: str, payload: CommentCreate, author_id: str) -> Document:
        post = self._load(post_id)
        if _missing(payload.body):
            raise InvalidInput("Comment body is required")
        comment = Comment(body=payload.body.strip(), author_id=author_id, post_id=post["id"])
        created = self.store.insert(COMMENTS, comment)
        return join_users(self.store, [created], "author_id", "author", fields=("username",))[0]


class ProjectService:
    def __init__(self, store: DocumentStore):
        self.store = store

    def _load(self, project_id: str) -> Document:
        project = self.store.get(PROJECTS, project_id)
        if not project:
            raise NotFound("Project not found")
        return project

    def _owned(self, project_id: str, caller_id: str, action: str) -> Document:
        project = self._load(project_id)
        if not is_owner(project["owner_id"], caller_id):
            raise Forbidden(f"Not authorized to {action} this project")
        return project

    def _with_owner(self, project: Document) -> Document:
        return join_users(self.store, [project], "owner_id", "owner")[0]

    def list(self) -> List[Document]:
        return join_users(self.store, self.store.find(PROJECTS), "owner_id", "owner")

    def get(self, project_id: str) -> Document:
        return self._with_owner(self._load(project_id))

    def create(self, payload: ProjectCreate, owner_id: str) -> Document:
        if _missing(payload.title):
            raise InvalidInput("Please provide a project title")
        data = payload.model_dump()
        data["title"] = data["title"].strip()
        try:
            project = Project(**data, owner_id=owner_id)
        except ValidationError as exc:
            raise _invalid(exc)
        return self._with_owner(self.store.insert(PROJECTS, project))

    def update(self, project_id: str, patch: ProjectUpdate, caller_id: str) -> Document:
        project = self._owned(project_id, caller_id, "update")
        update = _patch(patch, required=("title",))
        if update:
            project = self.store.update(PROJECTS, project["id"], update)
            if not project:
                raise NotFound("Project not found")
        return self._with_owner(project)

    def delete(self, project_id: str, caller_id: str) -> None:
        project = self._owned(project_id, caller_id, "delete")
        self.store.delete(PROJECTS, project["id"])


class ContactService:
    def __init__(self, store: DocumentStore):
        self.store = store

    def create(self, payload: ContactCreate) -> Document:
        if _missing(payload.name, payload.email, payload.message):
            raise InvalidInput("Please provide all required fields")
        try:
            message = ContactMessage(
                name=payload.name.strip(),
                email=payload.email.strip(),
                message=payload.message,
            )
        except ValidationError as exc:
            raise _invalid(exc, "Please provide a valid email address")
        return self.store.insert(MESSAGES, message)

    def list(self) -> List[Document]:
        return self.store.find(MESSAGES)
