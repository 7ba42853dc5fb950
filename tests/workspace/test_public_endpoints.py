"""公开读取接口：节点与工作区在不同可见性、身份下的返回结果。"""

from fastapi.testclient import TestClient

from app.packages.workspace.core.config import get_settings


def test_public_node_returns_inline_content_and_path(client: TestClient, seed):
    project = seed.project()
    root = seed.folder(project, "Root")
    docs = seed.folder(project, "Docs", parent=root)
    note = seed.node(project, "note.md", parent=docs, is_public=True)
    seed.content(note, "# hello")

    resp = client.get("/api/public/node", params={"nodeId": note.id})

    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["path"] == "Root/Docs/note.md"
    assert body["content"] == "# hello"
    assert body["signedUrl"] is None
    assert body["isAuthenticated"] is False
    assert body["node"]["id"] == note.id
    assert body["node"]["isPublic"] is True
    assert body["node"]["publicAccessRole"] == "editor"
    assert body["node"]["createdAt"]


def test_public_node_signs_stored_objects(client: TestClient, seed, store):
    project = seed.project()
    node = seed.node(project, "photo.png", is_public=True, public_access_role="viewer")
    key = f"{project.id}/{node.id}/blob"
    store.upload(key, b"png-bytes")
    seed.content(node, f"storage:{key}")

    body = client.get("/api/public/node", params={"nodeId": node.id}).json()

    assert body["content"] is None
    assert body["signedUrl"]
    assert body["node"]["publicAccessRole"] == "viewer"


def test_legacy_rows_default_the_access_role(client: TestClient, seed):
    project = seed.project()
    node = seed.node(project, "old.txt", is_public=True, public_access_role="viewer", schema_version=1)

    body = client.get("/api/public/node", params={"nodeId": node.id}).json()
    assert body["node"]["publicAccessRole"] == "editor"


def test_public_folder_has_no_content(client: TestClient, seed):
    project = seed.project()
    folder = seed.folder(project, "Shared", is_public=True)

    body = client.get("/api/public/node", params={"nodeId": folder.id}).json()
    assert body["content"] is None
    assert body["signedUrl"] is None
    assert body["path"] == "Shared"


def test_public_node_error_statuses(client: TestClient, seed):
    project = seed.project()
    private = seed.node(project, "secret.md")

    assert client.get("/api/public/node").status_code == 400
    assert client.get("/api/public/node", params={"nodeId": "missing"}).status_code == 404
    denied = client.get("/api/public/node", params={"nodeId": private.id})
    assert denied.status_code == 403
    assert "error" in denied.json()


def test_private_node_redirects_members(client: TestClient, seed, auth_headers, user_id):
    project = seed.project(members=[user_id])
    node = seed.node(project, "secret.md")

    member = client.get("/api/public/node", params={"nodeId": node.id}, headers=auth_headers(user_id))
    assert member.status_code == 200
    assert member.json() == {"redirectTo": f"/app?open={node.id}", "isAuthenticated": True}

    outsider = client.get("/api/public/node", params={"nodeId": node.id}, headers=auth_headers("someone-else"))
    assert outsider.status_code == 403


def test_invalid_token_is_treated_as_anonymous(client: TestClient, seed):
    project = seed.project()
    node = seed.node(project, "open.md", is_public=True)

    resp = client.get("/api/public/node", params={"nodeId": node.id}, headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 200
    assert resp.json()["isAuthenticated"] is False


def test_public_workspace_lists_folders_first(client: TestClient, seed, auth_headers, user_id):
    project = seed.project(is_public=True, name="Handbook")
    seed.node(project, "a.md")
    seed.folder(project, "zeta")
    seed.folder(project, "alpha")

    resp = client.get("/api/public/workspace", params={"workspaceId": project.id}, headers=auth_headers(user_id))

    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["workspace"]["name"] == "Handbook"
    assert body["workspace"]["isPublic"] is True
    assert body["isAuthenticated"] is True
    assert [item["name"] for item in body["nodes"]] == ["alpha", "zeta", "a.md"]
    assert set(body["nodes"][0]) == {"id", "name", "type", "parentId", "createdAt"}


def test_private_workspace_statuses(client: TestClient, seed, auth_headers, user_id):
    project = seed.project(members=[user_id])

    assert client.get("/api/public/workspace").status_code == 400
    assert client.get("/api/public/workspace", params={"workspaceId": "missing"}).status_code == 404
    assert client.get("/api/public/workspace", params={"workspaceId": project.id}).status_code == 403

    member = client.get("/api/public/workspace", params={"workspaceId": project.id}, headers=auth_headers(user_id))
    assert member.json() == {"redirectTo": f"/app?workspace={project.id}", "isAuthenticated": True}


def test_statuses_do_not_depend_on_elevated_storage_credentials(
    client: TestClient, seed, auth_headers, user_id, monkeypatch
):
    settings = get_settings()
    monkeypatch.setattr(settings, "storage_type", "S3")
    monkeypatch.setattr(settings, "s3_service_access_key_id", None)
    monkeypatch.setattr(settings, "s3_service_secret_access_key", None)

    project = seed.project(members=[user_id])
    private = seed.node(project, "secret.md")
    folder = seed.folder(project, "Shared", is_public=True)
    public_file = seed.node(project, "open.md", is_public=True)

    assert client.get("/api/public/node").status_code == 400
    assert client.get("/api/public/node", params={"nodeId": "missing"}).status_code == 404
    assert client.get("/api/public/node", params={"nodeId": private.id}).status_code == 403

    member = client.get("/api/public/node", params={"nodeId": private.id}, headers=auth_headers(user_id))
    assert member.status_code == 200
    assert member.json()["redirectTo"] == f"/app?open={private.id}"

    shared = client.get("/api/public/node", params={"nodeId": folder.id})
    assert shared.status_code == 200
    assert shared.json()["path"] == "Shared"

    # 只有需要签发文件读取链接时才构建特权存储，缺少凭证在这里才报错
    misconfigured = client.get("/api/public/node", params={"nodeId": public_file.id})
    assert misconfigured.status_code == 500
    assert misconfigured.json() == {"error": "缺少 S3 特权访问凭证配置"}
