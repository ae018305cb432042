from bson.objectid import ObjectId
from pymongo.errors import PyMongoError
import pytest
from fastapi.testclient import TestClient

from database import InMemoryDocumentStore
from main import create_app

POST = {
    "title": "Hello world",
    "content": "First post",
    "excerpt": "Intro",
    "tags": ["intro", "meta"],
}


@pytest.fixture
def post(client, ada):
    resp = client.post("/api/blog", json=POST, headers=ada["headers"])
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def comment_on(client, post_id, user, body="Nice post"):
    resp = client.post(f"/api/blog/{post_id}/comments", json={"body": body}, headers=user["headers"])
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def test_create_post(client, ada, post):
    assert post["title"] == "Hello world"
    assert post["excerpt"] == "Intro"
    assert post["tags"] == ["intro", "meta"]
    assert post["published"] is True
    assert post["author_id"] == ada["id"]
    assert post["author"] == {"id": ada["id"], "username": "ada", "email": "ada@example.com"}


def test_create_post_defaults(client, ada):
    resp = client.post("/api/blog", json={"title": "t", "content": "c"}, headers=ada["headers"])
    data = resp.json()["data"]
    assert data["excerpt"] == ""
    assert data["tags"] == []
    assert data["published"] is True


@pytest.mark.parametrize("payload", [{"title": "only title"}, {"content": "only content"}, {}])
def test_create_post_requires_title_and_content(client, ada, payload):
    resp = client.post("/api/blog", json=payload, headers=ada["headers"])
    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_create_post_requires_auth(client):
    resp = client.post("/api/blog", json=POST)
    assert resp.status_code == 401


def test_list_posts_newest_first_with_authors(client, ada, grace):
    client.post("/api/blog", json={"title": "a", "content": "1"}, headers=ada["headers"])
    client.post("/api/blog", json={"title": "b", "content": "2"}, headers=grace["headers"])
    client.post("/api/blog", json={"title": "c", "content": "3"}, headers=ada["headers"])

    body = client.get("/api/blog").json()
    assert body["success"] is True
    assert body["count"] == 3
    assert [p["title"] for p in body["data"]] == ["c", "b", "a"]
    assert [p["author"]["username"] for p in body["data"]] == ["ada", "grace", "ada"]
    assert body["data"][1]["author"]["email"] == "grace@example.com"


def test_get_post_includes_comments(client, ada, grace, post):
    first = comment_on(client, post["id"], grace, "first")
    second = comment_on(client, post["id"], ada, "second")

    resp = client.get(f"/api/blog/{post['id']}")
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["author"]["username"] == "ada"
    assert [c["id"] for c in data["comments"]] == [second["id"], first["id"]]
    assert data["comments"][1]["author"] == {"id": grace["id"], "username": "grace"}


@pytest.mark.parametrize("post_id", [str(ObjectId()), "nope"])
def test_get_missing_post(client, post_id):
    resp = client.get(f"/api/blog/{post_id}")
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "message": "Blog post not found"}


def test_author_can_update(client, ada, post):
    resp = client.put(
        f"/api/blog/{post['id']}",
        json={"title": "Edited", "published": False, "author_id": "someone-else"},
        headers=ada["headers"],
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["title"] == "Edited"
    assert data["published"] is False
    assert data["content"] == "First post"
    assert data["author_id"] == ada["id"]
    assert client.get(f"/api/blog/{post['id']}").json()["data"]["title"] == "Edited"


def test_non_author_cannot_update_or_delete(client, grace, post):
    resp = client.put(f"/api/blog/{post['id']}", json={"title": "Hijacked"}, headers=grace["headers"])
    assert resp.status_code == 403
    assert resp.json() == {"success": False, "message": "Not authorized to update this blog post"}

    resp = client.delete(f"/api/blog/{post['id']}", headers=grace["headers"])
    assert resp.status_code == 403
    assert client.get(f"/api/blog/{post['id']}").json()["data"]["title"] == "Hello world"


def test_missing_post_is_not_found_before_ownership(client, grace):
    missing = str(ObjectId())
    assert client.put(f"/api/blog/{missing}", json={"title": "x"}, headers=grace["headers"]).status_code == 404
    assert client.delete(f"/api/blog/{missing}", headers=grace["headers"]).status_code == 404


def test_delete_cascades_to_comments(client, store, ada, grace, post):
    other = client.post("/api/blog", json={"title": "other", "content": "x"}, headers=ada["headers"]).json()["data"]
    for n in range(3):
        comment_on(client, post["id"], grace, f"comment {n}")
    kept = comment_on(client, other["id"], grace)

    resp = client.delete(f"/api/blog/{post['id']}", headers=ada["headers"])
    assert resp.status_code == 200
    assert resp.json() == {
        "success": True,
        "message": "Blog post and associated comments deleted successfully",
    }
    assert client.get(f"/api/blog/{post['id']}").status_code == 404
    assert store.find("comment", {"post_id": post["id"]}) == []
    assert [c["id"] for c in store.find("comment")] == [kept["id"]]


class FailingCommentDeleteStore(InMemoryDocumentStore):
    def delete_many(self, collection, filter):
        raise PyMongoError("connection reset")


def test_delete_succeeds_when_comment_cascade_fails(settings):
    store = FailingCommentDeleteStore()
    client = TestClient(create_app(settings, store))
    resp = client.post(
        "/api/users/register",
        json={"username": "ada", "email": "ada@example.com", "password": "pw"},
    )
    headers = {"Authorization": f"Bearer {resp.json()['data']['token']}"}
    post = client.post("/api/blog", json=POST, headers=headers).json()["data"]
    client.post(f"/api/blog/{post['id']}/comments", json={"body": "orphan"}, headers=headers)

    resp = client.delete(f"/api/blog/{post['id']}", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert store.get("blogpost", post["id"]) is None
    assert len(store.find("comment", {"post_id": post["id"]})) == 1


def test_comment_requires_existing_post(client, ada):
    resp = client.post(f"/api/blog/{ObjectId()}/comments", json={"body": "hi"}, headers=ada["headers"])
    assert resp.status_code == 404
    assert resp.json()["message"] == "Blog post not found"


def test_comment_requires_body(client, ada, post):
    resp = client.post(f"/api/blog/{post['id']}/comments", json={"body": ""}, headers=ada["headers"])
    assert resp.status_code == 400


def test_comment_requires_auth(client, post):
    resp = client.post(f"/api/blog/{post['id']}/comments", json={"body": "hi"})
    assert resp.status_code == 401


def test_list_comments(client, ada, grace, post):
    comment_on(client, post["id"], grace, "one")
    comment_on(client, post["id"], ada, "two")

    body = client.get(f"/api/blog/{post['id']}/comments").json()
    assert body["count"] == 2
    assert [c["body"] for c in body["data"]] == ["two", "one"]
    assert body["data"][0]["author"] == {"id": ada["id"], "username": "ada"}
    assert body["data"][0]["post_id"] == post["id"]


def test_list_comments_for_unknown_post_is_empty(client):
    body = client.get(f"/api/blog/{ObjectId()}/comments").json()
    assert body == {"success": True, "count": 0, "data": []}


def test_update_strips_title(client, ada, post):
    resp = client.put(f"/api/blog/{post['id']}", json={"title": "  Edited  "}, headers=ada["headers"])
    assert resp.status_code == 200
    assert resp.json()["data"]["title"] == "Edited"


class VanishingUpdateStore(InMemoryDocumentStore):
    """The document is deleted after it is loaded but before the update lands."""

    def update(self, collection, doc_id, fields):
        self.delete(collection, doc_id)
        return super().update(collection, doc_id, fields)


def test_update_of_post_deleted_mid_request_is_not_found(settings):
    client = TestClient(create_app(settings, VanishingUpdateStore()))
    resp = client.post(
        "/api/users/register",
        json={"username": "ada", "email": "ada@example.com", "password": "pw"},
    )
    headers = {"Authorization": f"Bearer {resp.json()['data']['token']}"}
    post = client.post("/api/blog", json=POST, headers=headers).json()["data"]

    resp = client.put(f"/api/blog/{post['id']}", json={"title": "Edited"}, headers=headers)
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "message": "Blog post not found"}
