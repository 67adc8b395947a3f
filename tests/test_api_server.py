from io import BytesIO

import pytest

import api_server
from models.target_artifact import TargetArtifact


@pytest.fixture
def client():
    api_server.app.config["TESTING"] = True
    with api_server.app.test_client() as client:
        yield client
    api_server.sessions.clear()


def _upload(client, data: bytes, filename="art.png", mime="image/png", session_id=None):
    form = {"artwork": (BytesIO(data), filename, mime)}
    if session_id:
        form["session_id"] = session_id
    return client.post("/api/analyze-artwork", data=form, content_type="multipart/form-data")


def _fake_compile(img, name=None):
    return TargetArtifact(filename="art.mind", data=b"MIND", size_bytes=4,
                          created_at="2026-01-01T00:00:00+00:00", api_base="http://compiler.invalid")


def test_health(client):
    res = client.get("/api/health")
    assert res.status_code == 200
    assert res.get_json()["ok"] is True


def test_analyze_strong_artwork_and_fetch_record(client, to_png, noise):
    res = _upload(client, to_png(noise))
    body = res.get_json()

    assert res.status_code == 200
    assert body["success"] is True
    assert body["can_continue"] is True
    assert body["message"] == "Analysis complete. You can continue."
    assert body["meta"]["width"] == 850 and body["meta"]["type"] == "image/png"
    assert set(body["debug"]) == {"sharpness", "contrastStd", "featureDensity", "minDim", "flatRatio"}

    stored = client.get(f"/api/artwork-score/{body['artwork_id']}").get_json()
    assert stored["score"] == body["score"]
    assert stored["label"] == body["label"]


def test_analyze_weak_artwork_blocks_target(client, to_png, black_small):
    body = _upload(client, to_png(black_small)).get_json()

    assert body["can_continue"] is False
    assert body["score"] < 40
    assert body["message"].startswith("Analysis complete. Tracking is weak.")

    res = client.post("/api/compile-target", json={"session_id": body["session_id"]})
    assert res.status_code == 409


def test_rejects_declared_type(client, to_png, noise):
    res = _upload(client, to_png(noise[:50, :50]), filename="art.gif", mime="image/gif")
    assert res.status_code == 400
    assert res.get_json()["message"] == "Invalid file type. Upload a JPG or PNG."


def test_rejects_mislabelled_content(client, to_png, noise):
    res = _upload(client, to_png(noise[:50, :50], fmt="GIF"), filename="art.png", mime="image/png")
    assert res.status_code == 400


def test_rejects_undecodable_upload(client):
    res = _upload(client, b"garbage")
    assert res.status_code == 400
    assert res.get_json()["message"] == "Failed to load image."


def test_rejects_tiny_image(client, to_png, noise):
    res = _upload(client, to_png(noise[:2, :2]))
    assert res.status_code == 400


def test_missing_upload(client):
    res = client.post("/api/analyze-artwork", data={}, content_type="multipart/form-data")
    assert res.status_code == 400


def test_unknown_score(client):
    assert client.get("/api/artwork-score/does-not-exist").status_code == 404


def test_full_wizard_flow(client, monkeypatch, to_png, noise):
    monkeypatch.setattr(api_server.target_compiler_service, "compile", _fake_compile)
    monkeypatch.setattr(api_server.video_service, "probe_duration", lambda path: 20.0)

    session_id = _upload(client, to_png(noise)).get_json()["session_id"]

    res = client.post("/api/compile-target", json={"session_id": session_id})
    assert res.status_code == 200
    assert res.get_json()["target"]["filename"] == "art.mind"

    download = client.get(f"/api/target/{session_id}")
    assert download.status_code == 200
    assert download.data == b"MIND"

    # no video yet
    res = client.post("/api/experience-link", json={"session_id": session_id,
                                                    "page_url": "https://ar.example.com/b/step5page.html"})
    assert res.status_code == 400

    res = client.post("/api/attach-video", data={
        "session_id": session_id,
        "video": (BytesIO(b"\x00" * 64), "clip.webm", "video/webm"),
    }, content_type="multipart/form-data")
    body = res.get_json()
    assert res.status_code == 200
    assert body["meta"]["duration"] == 20.0
    assert body["warnings"] == [
        "Video is longer than 15 seconds. Shorter videos load faster.",
        "MP4 is recommended for best compatibility.",
    ]

    res = client.post("/api/experience-link", json={"session_id": session_id,
                                                    "page_url": "https://ar.example.com/b/step5page.html"})
    assert res.get_json()["url"] == "https://ar.example.com/b/experience.html"

    res = client.post("/api/clear-session", json={"session_id": session_id})
    assert res.get_json()["success"] is True
    assert session_id not in api_server.sessions


def test_rejects_unsupported_video(client, to_png, noise):
    session_id = _upload(client, to_png(noise)).get_json()["session_id"]
    res = client.post("/api/attach-video", data={
        "session_id": session_id,
        "video": (BytesIO(b"\x00"), "clip.avi", "video/x-msvideo"),
    }, content_type="multipart/form-data")
    assert res.status_code == 400
    assert res.get_json()["message"] == "Unsupported format. Upload MP4 or WebM."


def test_compile_requires_session(client):
    assert client.post("/api/compile-target", json={"session_id": "nope"}).status_code == 400


def test_compile_failure_is_reported(client, monkeypatch, to_png, noise):
    from services.target_compiler_service import TargetCompilerError

    def _boom(img, name=None):
        raise TargetCompilerError("compiler crashed")

    monkeypatch.setattr(api_server.target_compiler_service, "compile", _boom)
    session_id = _upload(client, to_png(noise)).get_json()["session_id"]

    res = client.post("/api/compile-target", json={"session_id": session_id})
    assert res.status_code == 502
    assert "compiler crashed" in res.get_json()["message"]


def test_compiler_health_endpoint(client, monkeypatch):
    monkeypatch.setattr(api_server.target_compiler_service, "is_healthy", lambda: False)
    assert client.get("/api/compiler-health").get_json()["ok"] is False


def test_reupload_replaces_stored_score(client, to_png, noise, black_small):
    first = _upload(client, to_png(black_small)).get_json()
    second = _upload(client, to_png(noise), session_id=first["session_id"]).get_json()

    assert second["session_id"] == first["session_id"]
    assert second["artwork_id"] != first["artwork_id"]
    assert client.get(f"/api/artwork-score/{first['artwork_id']}").status_code == 404
    assert client.get(f"/api/artwork-score/{second['artwork_id']}").status_code == 200

    client.post("/api/clear-session", json={"session_id": first["session_id"]})
    assert client.get(f"/api/artwork-score/{first['artwork_id']}").status_code == 404
    assert client.get(f"/api/artwork-score/{second['artwork_id']}").status_code == 404


def test_compile_with_garbled_backend_reply(client, monkeypatch, to_png, noise):
    from unittest.mock import MagicMock

    reply = MagicMock(ok=True, status_code=200, text="<html>proxy</html>")
    reply.json.side_effect = ValueError("not json")
    http = MagicMock()
    http.post.return_value = reply
    monkeypatch.setattr(api_server.target_compiler_service, "session", http)

    session_id = _upload(client, to_png(noise)).get_json()["session_id"]
    res = client.post("/api/compile-target", json={"session_id": session_id})

    assert res.status_code == 502
    assert res.get_json()["message"].startswith("Target generation failed.")
