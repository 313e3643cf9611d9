import base64
from io import BytesIO

import numpy as np
import pytest
from PIL import Image as PILImage

import api_server
from config import Settings


def png_bytes(pixels):
    out = BytesIO()
    PILImage.fromarray(pixels).save(out, format="PNG")
    return out.getvalue()


def two_tone():
    px = np.full((4, 4, 3), 10, dtype=np.uint8)
    px[1, 2] = (200, 200, 200)
    return px


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(api_server, "settings", Settings(canvas_size=4))
    monkeypatch.setattr(api_server, "sessions", {})
    api_server.app.config["TESTING"] = True
    with api_server.app.test_client() as c:
        yield c


@pytest.fixture
def session_id(client):
    resp = client.post("/api/sessions")
    assert resp.status_code == 201
    return resp.get_json()["session_id"]


def upload(client, session_id, slot, pixels, filename="img.png"):
    return client.post(
        f"/api/sessions/{session_id}/slots/{slot}",
        data={"image": (BytesIO(png_bytes(pixels)), filename)},
        content_type="multipart/form-data",
    )


def test_health(client):
    body = client.get("/api/health").get_json()
    assert body["status"] == "healthy"
    assert body["active_sessions"] == 0


def test_new_session_state(client, session_id):
    state = client.get(f"/api/sessions/{session_id}").get_json()["state"]
    assert state["range"] == 3
    assert state["opacity"] == 0.5
    assert state["populated"] == [False] * 4
    assert state["active_slot"] is None
    assert state["message"].startswith("Please upload all 4 images")


def test_unknown_session(client):
    assert client.get("/api/sessions/nope").status_code == 404
    assert client.post("/api/sessions/nope/pointer-leave").status_code == 404


def test_upload_and_hover(client, session_id):
    resp = upload(client, session_id, 0, two_tone())
    assert resp.status_code == 200
    assert resp.get_json()["width"] == 4

    resp = client.post(f"/api/sessions/{session_id}/pointer-move",
                       json={"slot": 0, "x": 2.4, "y": 1, "include_images": True})
    body = resp.get_json()
    assert body["ignored"] is False
    state = body["state"]
    assert state["sampled_color"] == {"r": 200, "g": 200, "b": 200}
    assert state["tooltip"] == "RGB: (200, 200, 200)"
    assert state["active_slot"] == 0
    assert state["position"] == {"x": 2, "y": 1}
    assert state["match_counts"] == {"0": 1}

    data_url = body["images"]["0"]
    assert data_url.startswith("data:image/png;base64,")
    with PILImage.open(BytesIO(base64.b64decode(data_url.split(",", 1)[1]))) as img:
        assert img.getpixel((2, 1)) == (228, 228, 228, 255)


def test_serve_displayed_and_original(client, session_id):
    upload(client, session_id, 0, two_tone())
    client.post(f"/api/sessions/{session_id}/pointer-move", json={"slot": 0, "x": 2, "y": 1})

    shown = client.get(f"/api/sessions/{session_id}/slots/0/image")
    assert shown.mimetype == "image/png"
    with PILImage.open(BytesIO(shown.data)) as img:
        assert img.getpixel((2, 1)) == (228, 228, 228, 255)

    original = client.get(f"/api/sessions/{session_id}/slots/0/image?which=original")
    with PILImage.open(BytesIO(original.data)) as img:
        assert img.getpixel((2, 1)) == (200, 200, 200, 255)

    assert client.get(f"/api/sessions/{session_id}/slots/1/image").status_code == 404
    assert client.get(f"/api/sessions/{session_id}/slots/0/image?which=x").status_code == 400


def test_ignored_pointer_move(client, session_id):
    upload(client, session_id, 0, two_tone())
    body = client.post(f"/api/sessions/{session_id}/pointer-move",
                       json={"slot": 0, "x": 40, "y": 1}).get_json()
    assert body["success"] is True
    assert body["ignored"] is True
    assert body["state"]["active_slot"] is None


def test_pointer_move_needs_coordinates(client, session_id):
    resp = client.post(f"/api/sessions/{session_id}/pointer-move", json={"slot": 0})
    assert resp.status_code == 400


def test_pointer_leave(client, session_id):
    upload(client, session_id, 0, two_tone())
    client.post(f"/api/sessions/{session_id}/pointer-move", json={"slot": 0, "x": 2, "y": 1})
    state = client.post(f"/api/sessions/{session_id}/pointer-leave").get_json()["state"]
    assert state["active_slot"] is None
    assert state["sampled_color"] is None
    controller = api_server.sessions[session_id]
    assert controller.get_displayed_buffer(0) is controller.get_original_buffer(0)


def test_settings(client, session_id):
    resp = client.post(f"/api/sessions/{session_id}/settings", json={"range": 10, "opacity": 0.25})
    state = resp.get_json()["state"]
    assert (state["range"], state["opacity"]) == (10, 0.25)

    resp = client.post(f"/api/sessions/{session_id}/settings", json={"range": 10, "opacity": 3})
    assert resp.status_code == 400
    controller = api_server.sessions[session_id]
    assert (controller.range, controller.opacity) == (10, 0.25)


def test_bad_uploads(client, session_id):
    resp = client.post(f"/api/sessions/{session_id}/slots/0", data={},
                       content_type="multipart/form-data")
    assert resp.status_code == 400

    resp = upload(client, session_id, 0, two_tone(), filename="img.txt")
    assert resp.status_code == 400

    resp = client.post(
        f"/api/sessions/{session_id}/slots/0",
        data={"image": (BytesIO(b"garbage"), "img.png")},
        content_type="multipart/form-data",
    )
    assert resp.status_code == 400
    assert not api_server.sessions[session_id].is_populated(0)

    assert upload(client, session_id, 9, two_tone()).status_code == 400


def test_clear_slot_and_close_session(client, session_id):
    upload(client, session_id, 2, two_tone())
    state = client.delete(f"/api/sessions/{session_id}/slots/2").get_json()["state"]
    assert state["populated"] == [False] * 4

    assert client.delete(f"/api/sessions/{session_id}").status_code == 200
    assert session_id not in api_server.sessions
    assert client.delete(f"/api/sessions/{session_id}").status_code == 404


@pytest.mark.parametrize("value", [3.7, "3.5", True, None])
def test_settings_reject_fractional_range(client, session_id, value):
    resp = client.post(f"/api/sessions/{session_id}/settings", json={"range": value})
    assert resp.status_code == 400
    assert api_server.sessions[session_id].range == 3


def test_settings_accept_whole_float_range(client, session_id):
    resp = client.post(f"/api/sessions/{session_id}/settings", json={"range": 12.0})
    assert resp.get_json()["state"]["range"] == 12
