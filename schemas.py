"""
Database Schemas for the Portfolio & Blog API

Each stored Pydantic model corresponds to a MongoDB collection.
The collection name is the lowercase of the class name.

Collections:
- User: authentication + identity
- BlogPost: blog posts owned by an author
- Comment: comments attached to a blog post
- Project: portfolio projects owned by a user
- ContactMessage: public contact form submissions

Request payloads follow the stored models. Fields a handler must check
itself (to answer with its own message) are Optional here.
"""
from pydantic import BaseModel, Field, EmailStr, TypeAdapter
from typing import Optional, List


def collection_name(model) -> str:
    return model.__name__.lower()


_email_adapter = TypeAdapter(EmailStr)


def normalize_email(value: str) -> str:
    """Canonical form stored for `EmailStr` fields (domain lowercased).

    Raises pydantic.ValidationError when `value` is not an email address.
    """
    return _email_adapter.validate_python(value.strip())


# Stored documents

class User(BaseModel):
    username: str = Field(..., min_length=3, max_length=30, description="Unique handle")
    email: EmailStr
    password_hash: str = Field(..., description="Hashed password, never returned")

class BlogPost(BaseModel):
    title: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    excerpt: str = ""
    author_id: str = Field(..., description="Owning user id")
    tags: List[str] = Field(default_factory=list)
    published: bool = True

class Comment(BaseModel):
    body: str = Field(..., min_length=1)
    author_id: str
    post_id: str

class Project(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    image_url: Optional[str] = None
    repo_url: Optional[str] = None
    live_url: Optional[str] = None
    technologies: List[str] = Field(default_factory=list)
    owner_id: str = Field(..., description="Owning user id")

class ContactMessage(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    message: str = Field(..., min_length=1)
    read: bool = False


# Requests

class RegisterRequest(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None

class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None

class BlogPostCreate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    excerpt: Optional[str] = None
    tags: List[str] = []
    published: bool = True

class BlogPostUpdate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    excerpt: Optional[str] = None
    tags: Optional[List[str]] = None
    published: Optional[bool] = None

class CommentCreate(BaseModel):
    body: Optional[str] = None

class ProjectCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    repo_url: Optional[str] = None
    live_url: Optional[str] = None
    technologies: List[str] = []

class ProjectUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    repo_url: Optional[str] = None
    live_url: Optional[str] = None
    technologies: Optional[List[str]] = None

class ContactCreate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    message: Optional[str] = None
