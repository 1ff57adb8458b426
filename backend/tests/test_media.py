import pytest

from app.config import get_settings
from app.errors import RangeNotSatisfiableError
from app.services.media_storage import parse_range
from conftest import auth_headers

PAYLOAD = bytes(range(256)) * 4  # 1024 bytes
SIZE = 1000


@pytest.fixture
def video(upload_dir):
    directory = upload_dir / "videos"
    directory.mkdir(parents=True)
    path = directory / "clip.mp4"
    path.write_bytes(PAYLOAD[:SIZE])
    return path


def test_whole_file_without_range(client, video):
    r = client.get("/api/videos/clip.mp4")
    assert r.status_code == 200
    assert r.headers["content-length"] == str(SIZE)
    assert r.headers["content-type"] == "video/mp4"
    assert r.content == PAYLOAD[:SIZE]


def test_range_request(client, video):
    r = client.get("/api/videos/clip.mp4", headers={"Range": "bytes=0-99"})
    assert r.status_code == 206
    assert r.headers["content-length"] == "100"
    assert r.headers["content-range"] == "bytes 0-99/1000"
    assert r.headers["accept-ranges"] == "bytes"
    assert r.content == PAYLOAD[:100]


def test_open_ended_and_suffix_ranges(client, video):
    r = client.get("/api/videos/clip.mp4", headers={"Range": "bytes=900-"})
    assert r.status_code == 206
    assert r.headers["content-range"] == "bytes 900-999/1000"
    assert r.content == PAYLOAD[900:SIZE]

    r = client.get("/api/videos/clip.mp4", headers={"Range": "bytes=-10"})
    assert r.headers["content-range"] == "bytes 990-999/1000"
    assert r.content == PAYLOAD[990:SIZE]


def test_unsatisfiable_range(client, video):
    r = client.get("/api/videos/clip.mp4", headers={"Range": "bytes=5000-"})
    assert r.status_code == 416
    assert r.headers["content-range"] == "bytes */1000"
    assert r.json()["success"] is False


def test_missing_video(client, upload_dir):
    assert client.get("/api/videos/nope.mp4").status_code == 404


def test_path_traversal_is_not_found(client, video, upload_dir):
    (upload_dir / "secret.mp4").write_bytes(b"x")
    assert client.get("/api/videos/..%2Fsecret.mp4").status_code == 404
    assert client.get("/api/videos/.hidden.mp4").status_code == 404


def test_serve_image(client, upload_dir):
    directory = upload_dir / "images"
    directory.mkdir(parents=True)
    (directory / "pothole.png").write_bytes(b"\x89PNG")

    r = client.get("/api/media/images/pothole.png")
    assert r.status_code == 200
    assert r.headers["content-type"] == "image/png"
    assert r.content == b"\x89PNG"


@pytest.mark.parametrize("header, expected", [
    ("bytes=0-99", (0, 99)),
    ("bytes=100-", (100, 999)),
    ("bytes=-1", (999, 999)),
    ("bytes=-5000", (0, 999)),
    ("bytes=990-5000", (990, 999)),
    ("bytes=0-9, 20-29", (0, 9)),
])
def test_parse_range(header, expected):
    assert parse_range(header, SIZE) == expected


@pytest.mark.parametrize("header", ["bytes=1000-", "bytes=50-10", "bytes=-0", "bytes=", "items=0-5", "bytes=a-b"])
def test_parse_range_rejects(header):
    with pytest.raises(RangeNotSatisfiableError):
        parse_range(header, SIZE)


def test_oversized_upload_is_rejected(client, user, upload_dir, monkeypatch):
    monkeypatch.setattr(get_settings(), "max_upload_size_mb", 0)
    r = client.post(
        "/api/events",
        data={"category": "FLOOD", "title": "Flooded", "description": "Deep water", "lat": "6.5", "lon": "3.4"},
        files=[("media", ("flood.mp4", b"\x00" * 1024, "video/mp4"))],
        headers=auth_headers(user),
    )
    assert r.status_code == 413
    assert list((upload_dir / "videos").iterdir()) == []


def test_upload_disk_failure_is_internal_error(client, user, upload_dir):
    # A plain file where the upload directory should be
    upload_dir.write_bytes(b"")
    r = client.post(
        "/api/events",
        data={"category": "FLOOD", "title": "Flooded", "description": "Deep water", "lat": "6.5", "lon": "3.4"},
        files=[("media", ("flood.jpg", b"\xff\xd8", "image/jpeg"))],
        headers=auth_headers(user),
    )
    assert r.status_code == 500
    assert r.json() == {"success": False, "error": "Failed to store upload"}
    assert client.get("/api/events").json()["pagination"]["total"] == 0
