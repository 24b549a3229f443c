from app.core.storage import path_from_url, remove_file, upload_target


def test_path_from_url_maps_public_url(uploads_dir):
    path, url = upload_target("receipts", "REC1.pdf")

    assert url == "/uploads/receipts/REC1.pdf"
    assert path_from_url(url) == (uploads_dir / "receipts" / "REC1.pdf").resolve()


def test_path_from_url_ignores_foreign_urls(uploads_dir):
    assert path_from_url(None) is None
    assert path_from_url("") is None
    assert path_from_url("https://cdn.test/uploads/a.pdf") is None


def test_path_from_url_rejects_traversal(uploads_dir):
    assert path_from_url("/uploads/../victim.txt") is None
    assert path_from_url("/uploads/receipts/../../victim.txt") is None
    assert path_from_url("/uploads//etc/passwd") is None
    assert path_from_url("/uploads/..") is None


def test_path_from_url_allows_dots_inside_uploads(uploads_dir):
    assert path_from_url("/uploads/receipts/../nfe/NFe1.pdf") == (uploads_dir / "nfe" / "NFe1.pdf").resolve()


def test_remove_file_tolerates_missing(uploads_dir):
    remove_file(uploads_dir / "nao-existe.pdf")
    remove_file(None)
