"""
Tests for the HTTP adapter
"""

import io
import json

import cv2
import numpy as np
import pytest
from flask import Flask

from document_capture import server
from document_capture.config import ENV_PREFIX, PipelineConfig, _ENV_FIELDS
from document_capture.server import create_app

from conftest import PAGE_CORNERS


def png_bytes(image):
    ok, buffer = cv2.imencode(".png", image)
    assert ok
    return buffer.tobytes()


class TestServer:
    """Tests for the Flask app"""

    @pytest.fixture
    def client(self):
        app = create_app(PipelineConfig())
        app.config['TESTING'] = True
        return app.test_client()

    def upload(self, client, url, image_bytes, **form):
        data = {'file': (io.BytesIO(image_bytes), 'photo.png')}
        data.update(form)
        return client.post(url, data=data, content_type='multipart/form-data')

    def test_is_available(self, client):
        response = client.get('/is-available')
        assert response.status_code == 200
        assert response.get_json() == {"isAvailable": True}

    def test_detect(self, client, document_frame, page_corners):
        response = self.upload(client, '/detect', png_bytes(document_frame))
        assert response.status_code == 200
        body = response.get_json()
        assert body["found"] is True
        np.testing.assert_allclose(body["corners"], page_corners, atol=5.0)

    def test_detect_nothing(self, client, blank_frame):
        response = self.upload(client, '/detect', png_bytes(blank_frame))
        assert response.status_code == 200
        assert response.get_json() == {"found": False, "corners": None}

    def test_missing_file(self, client):
        response = client.post('/detect', data={}, content_type='multipart/form-data')
        assert response.status_code == 400
        assert response.get_json()["error_code"] == "INVALID_FRAME"

    def test_undecodable_file(self, client):
        response = self.upload(client, '/detect', b"definitely not a png")
        assert response.status_code == 400
        assert "message" in response.get_json()

    def test_rectify_detected(self, client, document_frame):
        response = self.upload(client, '/rectify', png_bytes(document_frame))
        assert response.status_code == 200
        assert response.mimetype == 'image/png'
        page = cv2.imdecode(np.frombuffer(response.data, np.uint8), cv2.IMREAD_COLOR)
        assert abs(page.shape[1] - 800) <= 10
        assert abs(page.shape[0] - 1100) <= 10

    def test_rectify_with_corners(self, client, document_frame):
        response = self.upload(client, '/rectify', png_bytes(document_frame),
                               corners=json.dumps(PAGE_CORNERS))
        assert response.status_code == 200
        page = cv2.imdecode(np.frombuffer(response.data, np.uint8), cv2.IMREAD_COLOR)
        assert page.shape == (1100, 800, 3)

    def test_rectify_nothing_found(self, client, blank_frame):
        response = self.upload(client, '/rectify', png_bytes(blank_frame))
        assert response.status_code == 404
        assert response.get_json()["error_code"] == "NO_DOCUMENT"

    @pytest.mark.parametrize("corners", ["[[0, 0], [10, 0]]", "{not json", "[[0,0],[10,0],[20,0],[30,0]]"])
    def test_rectify_bad_corners(self, client, document_frame, corners):
        response = self.upload(client, '/rectify', png_bytes(document_frame), corners=corners)
        assert response.status_code == 400
        assert response.get_json()["error_code"] == "INVALID_QUADRILATERAL"

    def test_rectify_enhance_form_field(self, client, document_frame):
        response = self.upload(client, '/rectify', png_bytes(document_frame),
                               corners=json.dumps(PAGE_CORNERS), enhance='grayscale')
        assert response.status_code == 200
        page = cv2.imdecode(np.frombuffer(response.data, np.uint8), cv2.IMREAD_COLOR)
        np.testing.assert_array_equal(page[:, :, 0], page[:, :, 1])

    def test_rectify_enhance_query(self, client, document_frame):
        response = self.upload(client, '/rectify?enhance=black_and_white', png_bytes(document_frame))
        assert response.status_code == 200
        page = cv2.imdecode(np.frombuffer(response.data, np.uint8), cv2.IMREAD_COLOR)
        assert set(np.unique(page)) <= {0, 255}

    def test_rectify_unknown_enhance(self, client, blank_frame):
        response = self.upload(client, '/rectify', png_bytes(blank_frame), enhance='sepia')
        assert response.status_code == 400
        assert response.get_json()["error_code"] == "INVALID_ENHANCEMENT"


class TestServerMain:
    """Tests for the server entry point"""

    def test_port_and_host_from_environment(self, monkeypatch):
        for suffix in _ENV_FIELDS:
            monkeypatch.delenv(ENV_PREFIX + suffix, raising=False)
        monkeypatch.setenv("PORT", "6123")
        monkeypatch.setenv("HOST", "127.0.0.1")

        calls = []
        monkeypatch.setattr(Flask, "run", lambda self, host=None, port=None: calls.append((host, port)))
        server.main()
        assert calls == [("127.0.0.1", 6123)]

    def test_environment_loaded_once(self, monkeypatch):
        monkeypatch.setenv("PORT", "6124")
        loads = []
        original = PipelineConfig.from_env.__func__

        def counting_from_env(cls, *args, **kwargs):
            loads.append(args)
            return original(cls, *args, **kwargs)

        monkeypatch.setattr(PipelineConfig, "from_env", classmethod(counting_from_env))
        monkeypatch.setattr(Flask, "run", lambda self, host=None, port=None: None)
        assert not hasattr(server, "load_dotenv")
        server.main()
        assert len(loads) == 1
