"""存储 key 推导规则：规范路径稳定、旧版路径确定且与文件名严格对应。"""

import hashlib

from app.packages.workspace.services.storage_paths import (
    canonical_path,
    extract_storage_key,
    legacy_path,
    name_hash,
    upload_staging_path,
)


def _sha10(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:10]


def test_canonical_path_ignores_file_name():
    assert canonical_path("P", "N") == "P/N/blob"
    assert canonical_path("P", "N") == canonical_path("P", "N")


def test_staging_path_lives_under_uploads():
    assert upload_staging_path("P", "N", "abc") == "P/N/uploads/abc"


def test_legacy_path_strips_accents_and_keeps_safe_extension():
    assert legacy_path("P", "N", "Déjà Vu.txt") == f"P/N/Deja_Vu_{_sha10('Déjà Vu.txt')}.txt"


def test_legacy_path_is_deterministic():
    assert legacy_path("P", "N", "Report (final).PDF") == legacy_path("P", "N", "Report (final).PDF")
    assert legacy_path("P", "N", "Report (final).PDF").endswith(".pdf")


def test_names_sharing_a_slug_still_get_distinct_paths():
    first = legacy_path("P", "N", "a b.txt")
    second = legacy_path("P", "N", "a_b.txt")
    assert first.startswith("P/N/a_b_") and second.startswith("P/N/a_b_")
    assert first != second


def test_empty_slug_falls_back_to_file():
    assert legacy_path("P", "N", "日本語.md") == f"P/N/file_{name_hash('日本語.md')}.md"


def test_unsafe_extension_is_kept_in_the_slug():
    path = legacy_path("P", "N", "archive.tar-gz!")
    assert path == f"P/N/archive.tar-gz_{_sha10('archive.tar-gz!')}"


def test_extract_storage_key_strips_quotes():
    assert extract_storage_key("storage:P/N/blob") == "P/N/blob"
    assert extract_storage_key('see storage: "P/N/blob"') == "P/N/blob"
    assert extract_storage_key("plain text") is None
    assert extract_storage_key("") is None
