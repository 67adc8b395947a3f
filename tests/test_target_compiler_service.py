import base64
from unittest.mock import MagicMock

import numpy as np
import pytest
import requests

from models.image import Image
from services.target_compiler_service import TargetCompilerService, TargetCompilerError


def _response(ok=True, status=200, body=None, text=""):
    res = MagicMock()
    res.ok = ok
    res.status_code = status
    res.text = text
    if isinstance(body, Exception):
        res.json.side_effect = body
    else:
        res.json.return_value = body
    return res


@pytest.fixture
def http():
    return MagicMock()


@pytest.fixture
def service(http):
    return TargetCompilerService(base_url="http://compiler.test/", timeout=3, session=http)


@pytest.fixture
def artwork():
    return Image(pixels=np.zeros((8, 8, 3), dtype=np.uint8), name="poster.png", mime_type="image/png")


def test_health_ok(service, http):
    http.get.return_value = _response(body={"ok": True})
    assert service.is_healthy() is True
    http.get.assert_called_once_with("http://compiler.test/health", timeout=5)


@pytest.mark.parametrize("response", [
    _response(body={"ok": False}),
    _response(ok=False, status=503, body={"ok": True}),
    _response(body=ValueError("no json")),
])
def test_health_not_ok(service, http, response):
    http.get.return_value = response
    assert service.is_healthy() is False


def test_health_unreachable(service, http):
    http.get.side_effect = requests.ConnectionError("refused")
    assert service.is_healthy() is False


def test_compile_returns_artifact(service, http, artwork):
    mind = base64.b64encode(b"MINDDATA").decode()
    http.post.return_value = _response(body={"mindBase64": mind, "filename": "poster.mind"})

    target = service.compile(artwork)

    assert target.filename == "poster.mind"
    assert target.data == b"MINDDATA"
    assert target.size_bytes == 9  # round(12 * 3 / 4)
    assert target.api_base == "http://compiler.test"
    assert target.to_meta()["placeholder"] is False

    url = http.post.call_args.args[0]
    payload = http.post.call_args.kwargs["json"]
    assert url == "http://compiler.test/api/mindar/compile"
    assert payload["imageName"] == "poster.png"
    assert payload["imageDataUrl"].startswith("data:image/png;base64,")


def test_compile_defaults_filename(service, http, artwork):
    http.post.return_value = _response(body={"mindBase64": base64.b64encode(b"x").decode()})
    assert service.compile(artwork).filename == "target.mind"


def test_compile_surfaces_backend_details(service, http, artwork):
    http.post.return_value = _response(ok=False, status=500, body={"details": "compiler crashed"})
    with pytest.raises(TargetCompilerError, match="compiler crashed"):
        service.compile(artwork)


def test_compile_falls_back_to_status(service, http, artwork):
    http.post.return_value = _response(ok=False, status=502, body=ValueError("html"), text="")
    with pytest.raises(TargetCompilerError, match=r"Backend error \(502\)"):
        service.compile(artwork)


def test_compile_requires_payload(service, http, artwork):
    http.post.return_value = _response(body={"filename": "t.mind"})
    with pytest.raises(TargetCompilerError, match="mindBase64 missing"):
        service.compile(artwork)


def test_compile_unreachable(service, http, artwork):
    http.post.side_effect = requests.ConnectionError("refused")
    with pytest.raises(TargetCompilerError, match="not reachable"):
        service.compile(artwork)


def test_compile_rejects_non_json_success(service, http, artwork):
    http.post.return_value = _response(body=ValueError("<html>proxy</html>"))
    with pytest.raises(TargetCompilerError, match="Expected JSON"):
        service.compile(artwork)


@pytest.mark.parametrize("payload", ["abc", "not*base64!"])
def test_compile_rejects_bad_base64(service, http, artwork, payload):
    http.post.return_value = _response(body={"mindBase64": payload})
    with pytest.raises(TargetCompilerError, match="not valid base64"):
        service.compile(artwork)


@pytest.mark.parametrize("body", [["ok"], "ok", None])
def test_health_ignores_non_object_json(service, http, body):
    http.get.return_value = _response(body=body)
    assert service.is_healthy() is False


def test_error_details_with_non_object_json(service, http, artwork):
    http.post.return_value = _response(ok=False, status=500, body=["boom"])
    with pytest.raises(TargetCompilerError, match=r"Backend error \(500\)"):
        service.compile(artwork)
