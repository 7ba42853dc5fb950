"""成员下载接口：解析存储 key 并返回或重定向到签名链接。"""

from urllib.parse import urlsplit

from fastapi.testclient import TestClient

from app.packages.workspace.services.storage_paths import legacy_path


def _relative(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.path}?{parts.query}"


def test_download_resolves_legacy_objects(client: TestClient, seed, auth_headers, user_id, store):
    project = seed.project(members=[user_id])
    node = seed.node(project, "Déjà Vu.txt")
    store.upload(legacy_path(project.id, node.id, node.name), b"old bytes")

    resp = client.post("/api/storage/download", json={"nodeId": node.id}, headers=auth_headers(user_id))

    assert resp.status_code == 200, resp.text
    assert resp.json()["success"] is True
    assert client.get(_relative(resp.json()["url"])).content == b"old bytes"


def test_download_get_redirects(client: TestClient, seed, auth_headers, user_id, store):
    project = seed.project(members=[user_id])
    node = seed.node(project, "a.bin")
    store.upload(f"{project.id}/{node.id}/blob", b"x")

    resp = client.get(
        "/api/storage/download",
        params={"nodeId": node.id},
        headers=auth_headers(user_id),
        follow_redirects=False,
    )
    assert resp.status_code == 307
    assert "/api/storage/object?t=" in resp.headers["location"]


def test_download_without_object_returns_404(client: TestClient, seed, auth_headers, user_id):
    project = seed.project(members=[user_id])
    node = seed.node(project, "empty.bin")

    resp = client.post("/api/storage/download", json={"nodeId": node.id}, headers=auth_headers(user_id))
    assert resp.status_code == 404
    assert resp.json() == {"error": "无法解析存储路径"}


def test_download_requires_membership(client: TestClient, seed, auth_headers, user_id):
    project = seed.project(members=[user_id])
    node = seed.node(project, "a.bin")

    assert client.post("/api/storage/download", json={"nodeId": node.id}).status_code == 401
    assert (
        client.post("/api/storage/download", json={"nodeId": node.id}, headers=auth_headers("other")).status_code
        == 403
    )
    assert client.post("/api/storage/download", json={}, headers=auth_headers(user_id)).status_code == 400


def test_signed_object_url_rejects_tampered_tokens(client: TestClient):
    assert client.get("/api/storage/object", params={"t": "not-a-token"}).status_code == 401
