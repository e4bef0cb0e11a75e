import asyncio

import httpx
import pytest

from books_api.app import app, get_book_store
from books_api.store import BookStore


@pytest.fixture()
def store():
    return BookStore()


@pytest.fixture(autouse=True)
def overrides(store):
    app.dependency_overrides[get_book_store] = lambda: store
    yield
    app.dependency_overrides.clear()


@pytest.fixture()
async def client():
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest.mark.anyio
async def test_create_and_get_book(client):
    resp = await client.post("/books", json={"name": "1984", "author": "Orwell"})
    assert resp.status_code == 201
    created = resp.json()
    assert created["id"] == 1
    assert created["name"] == "1984"
    assert set(created) == {"id", "name", "author", "created_at", "updated_at"}
    assert created["created_at"] == created["updated_at"]

    resp = await client.get(f"/books/{created['id']}")
    assert resp.status_code == 200
    assert resp.json()["author"] == "Orwell"


@pytest.mark.anyio
async def test_list_books_in_insertion_order(client):
    await client.post("/books", json={"name": "Go Programming", "author": "John Doe"})
    await client.post("/books", json={"name": "Concurrency in Go", "author": "Jane Smith"})

    resp = await client.get("/books")
    assert resp.status_code == 200
    assert [item["id"] for item in resp.json()] == [1, 2]


@pytest.mark.anyio
async def test_list_empty_store(client):
    resp = await client.get("/books")
    assert resp.status_code == 200
    assert resp.json() == []


@pytest.mark.anyio
async def test_update_and_delete_book(client, store):
    created = (await client.post("/books", json={"name": "Dune", "author": "Herbert"})).json()
    updated = await client.put(f"/books/{created['id']}", json={"name": "Dune Messiah", "author": "F. Herbert"})
    assert updated.status_code == 200
    body = updated.json()
    assert body["name"] == "Dune Messiah"
    assert body["created_at"] == created["created_at"]

    deleted = await client.delete(f"/books/{created['id']}")
    assert deleted.status_code == 204
    assert deleted.content == b""
    assert len(store) == 0

    missing = await client.get(f"/books/{created['id']}")
    assert missing.status_code == 404


@pytest.mark.anyio
async def test_deleted_id_is_not_reused(client):
    await client.post("/books", json={"name": "A", "author": "a"})
    await client.post("/books", json={"name": "B", "author": "b"})
    assert (await client.delete("/books/1")).status_code == 204

    listing = (await client.get("/books")).json()
    assert [item["id"] for item in listing] == [2]
    assert (await client.get("/books/1")).status_code == 404

    created = (await client.post("/books", json={"name": "New Book", "author": "X"})).json()
    assert created["id"] == 3


@pytest.mark.anyio
async def test_get_nonexistent_returns_404(client):
    resp = await client.get("/books/999")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Book not found"


@pytest.mark.anyio
async def test_update_nonexistent_returns_404(client):
    resp = await client.put("/books/999", json={"name": "n", "author": "a"})
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Book not found"


@pytest.mark.anyio
async def test_delete_nonexistent_returns_404(client):
    resp = await client.delete("/books/999")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Book not found"


@pytest.mark.anyio
@pytest.mark.parametrize("method", ["GET", "PUT", "DELETE"])
async def test_non_integer_id_returns_400(client, method):
    resp = await client.request(method, "/books/abc", json={"name": "n", "author": "a"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid book ID"


@pytest.mark.anyio
@pytest.mark.parametrize("method", ["PUT", "DELETE"])
async def test_missing_id_returns_400(client, method):
    resp = await client.request(method, "/books")
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Book ID is required"


@pytest.mark.anyio
async def test_malformed_body_returns_400(client, store):
    resp = await client.post("/books", content=b"{not json", headers={"Content-Type": "application/json"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid request body"
    assert len(store) == 0


@pytest.mark.anyio
async def test_invalid_update_body_leaves_record_untouched(client, store):
    created = store.add("Keep", "Me")
    resp = await client.put(f"/books/{created.id}", json={"name": ""})
    assert resp.status_code == 400
    assert store.get(created.id) == created


@pytest.mark.anyio
async def test_unsupported_method_returns_405(client):
    resp = await client.patch("/books/1", json={"name": "n"})
    assert resp.status_code == 405


@pytest.mark.anyio
async def test_health_reports_uptime(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["uptime"].endswith("s")


@pytest.mark.anyio
async def test_metrics_count_book_calls(client):
    await client.get("/books")
    await client.post("/books", json={"name": "n", "author": "a"})

    resp = await client.get("/metrics")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/plain")
    text = resp.text
    assert "api_call_count_total{" in text
    assert 'endpoint="/books"' in text
    assert 'method="POST"' in text
    assert "uptime_seconds" in text


@pytest.mark.anyio
async def test_request_id_is_echoed(client):
    resp = await client.get("/health", headers={"X-Request-ID": "abc-123"})
    assert resp.headers["X-Request-ID"] == "abc-123"


@pytest.mark.anyio
async def test_concurrent_creates_get_unique_ids(client):
    results = await asyncio.gather(
        *[client.post("/books", json={"name": f"book-{i}", "author": "x"}) for i in range(20)]
    )
    assert all(r.status_code == 201 for r in results)
    assert sorted(r.json()["id"] for r in results) == list(range(1, 21))


@pytest.mark.anyio
async def test_lifespan_seeds_store():
    app.dependency_overrides.clear()
    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as seeded:
            resp = await seeded.get("/books")
    assert [item["name"] for item in resp.json()] == ["Go Programming", "Concurrency in Go"]


@pytest.mark.anyio
async def test_trailing_slash_lists_books(client, store):
    store.add("A", "a")
    resp = await client.get("/books/")
    assert resp.status_code == 200
    assert [item["id"] for item in resp.json()] == [1]


@pytest.mark.anyio
@pytest.mark.parametrize("method", ["PUT", "DELETE"])
async def test_trailing_slash_without_id_returns_400(client, method):
    resp = await client.request(method, "/books/", json={"name": "n", "author": "a"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Book ID is required"


@pytest.mark.anyio
async def test_trailing_slash_after_id_is_served(client, store):
    created = store.add("A", "a")

    fetched = await client.get(f"/books/{created.id}/")
    assert fetched.status_code == 200
    assert fetched.json()["name"] == "A"

    updated = await client.put(f"/books/{created.id}/", json={"name": "B", "author": "b"})
    assert updated.status_code == 200
    assert updated.json()["name"] == "B"

    deleted = await client.delete(f"/books/{created.id}/")
    assert deleted.status_code == 204
    assert len(store) == 0
