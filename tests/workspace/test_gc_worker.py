"""暂存回收：令牌校验、保留规则与失败重试。"""

import os
import time
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from app.packages.workspace.core.config import get_settings
from app.packages.workspace.core.exceptions import UpstreamStorageError
from app.packages.workspace.crud.gc_jobs import gc_job_crud
from app.packages.workspace.models import GcJob
from app.packages.workspace.services.gc_service import select_removals
from app.packages.workspace.services.object_store import LocalObjectStore, ObjectEntry

GC_HEADERS = {"Authorization": "Bearer test-gc-token"}


def _entry(name, minutes=None):
    stamp = None if minutes is None else datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=minutes)
    return ObjectEntry(name=name, is_dir=False, size=1, last_modified=stamp)


def _stage(store, project_id, node_id, names):
    """按顺序写入暂存对象，并把修改时间错开，越靠后越新。"""
    base = time.time() - 3600
    for index, name in enumerate(names):
        key = f"{project_id}/{node_id}/uploads/{name}"
        store.upload(key, name.encode())
        stamp = base + index * 60
        os.utime(store.resolve(key), (stamp, stamp))


@pytest.fixture()
def isolated_jobs(db_session_fixture):
    """清空已有任务，避免其他用例入队的任务影响计数。"""
    db_session_fixture.query(GcJob).delete()
    db_session_fixture.commit()
    yield


def test_select_removals_keeps_current_and_newest():
    entries = [_entry("u1", 1), _entry("u2", 2), _entry("u3", 3), _entry("u4", 4), _entry("u5", 5)]
    assert sorted(select_removals(entries, current="u1", keep_count=3)) == ["u2"]
    assert sorted(select_removals(entries, current=None, keep_count=3)) == ["u1", "u2"]


def test_select_removals_never_guesses_without_timestamps():
    assert select_removals([_entry("a"), _entry("b")], current=None, keep_count=1) is None
    assert select_removals([_entry("a"), _entry("b")], current="a", keep_count=1) == ["b"]


def test_worker_rejects_missing_or_wrong_token(client: TestClient):
    assert client.post("/api/storage/gc-worker").status_code == 401
    assert client.post("/api/storage/gc-worker", headers={"Authorization": "Bearer wrong"}).status_code == 401


def test_worker_requires_configured_token(client: TestClient, monkeypatch):
    monkeypatch.setattr(get_settings(), "gc_worker_token", None)
    resp = client.post("/api/storage/gc-worker", headers=GC_HEADERS)
    assert resp.status_code == 500
    assert "error" in resp.json()


def test_worker_prunes_old_staging_objects(
    client: TestClient, seed, store, db_session_fixture, isolated_jobs
):
    project = seed.project()
    node = seed.node(project, "report.txt")
    names = ["u1", "u2", "u3", "u4", "u5"]
    _stage(store, project.id, node.id, names)
    seed.content(node, f"storage:{project.id}/{node.id}/uploads/u1")
    job = gc_job_crud.enqueue(db_session_fixture, node_id=node.id, project_id=project.id)

    resp = client.post("/api/storage/gc-worker", headers=GC_HEADERS)

    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["success"] is True
    assert body["processed"] == 1
    assert body["results"] == [{"id": job.id, "status": "done"}]
    remaining = [entry.name for entry in store.list(f"{project.id}/{node.id}/uploads")]
    assert remaining == ["u1", "u3", "u4", "u5"]

    db_session_fixture.expire_all()
    refreshed = db_session_fixture.get(GcJob, job.id)
    assert refreshed.status == "done"
    assert refreshed.attempts == 1


def test_worker_marks_failures_for_retry(
    client: TestClient, seed, store, db_session_fixture, isolated_jobs, monkeypatch
):
    project = seed.project()
    node = seed.node(project, "report.txt")
    _stage(store, project.id, node.id, ["u1", "u2", "u3", "u4", "u5"])
    job = gc_job_crud.enqueue(db_session_fixture, node_id=node.id, project_id=project.id)

    def failing_remove(self, keys):
        raise UpstreamStorageError("remove failed")

    monkeypatch.setattr(LocalObjectStore, "remove", failing_remove)
    body = client.post("/api/storage/gc-worker", headers=GC_HEADERS).json()

    assert body["processed"] == 1
    assert body["results"][0]["status"] == "error"
    assert "remove failed" in body["results"][0]["message"]

    db_session_fixture.expire_all()
    refreshed = db_session_fixture.get(GcJob, job.id)
    assert refreshed.status == "error"
    assert refreshed.last_error == "remove failed"

    # 重试时间未到，不会被再次执行
    again = client.post("/api/storage/gc-worker", headers=GC_HEADERS).json()
    assert again["processed"] == 0
