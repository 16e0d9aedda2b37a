import copy
import io
import os
import tempfile

import pytest
from PIL import Image

_TMP = tempfile.mkdtemp(prefix="skinai-test-")
os.environ["SKINAI_DATA_DIR"] = _TMP
os.environ["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ["ANALYSIS_PROVIDER"] = "openai"
os.environ["OPENAI_API_KEY"] = "sk-test"

import config  # noqa: E402
from app import app as flask_app  # noqa: E402
from modules import vlm  # noqa: E402
from modules.imaging import load_image  # noqa: E402
from modules.models import db  # noqa: E402


@pytest.fixture
def app():
    flask_app.config["TESTING"] = True
    with flask_app.app_context():
        db.drop_all()
        db.create_all()
        yield flask_app
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


def make_image_bytes(fmt="JPEG", size=(64, 48), color=(200, 160, 140)):
    buf = io.BytesIO()
    if fmt == "PNG":
        Image.new("RGBA", size, tuple(color) + (255,)).save(buf, format=fmt)
    else:
        Image.new("RGB", size, tuple(color)).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def jpeg_bytes():
    return make_image_bytes()


@pytest.fixture
def png_bytes():
    return make_image_bytes("PNG")


@pytest.fixture
def payload(jpeg_bytes):
    return load_image(jpeg_bytes, source="upload")


@pytest.fixture
def sample_result():
    return copy.deepcopy(vlm.SAMPLE_RESULT)


@pytest.fixture
def openai_settings(monkeypatch):
    monkeypatch.setattr(config, "ANALYSIS_PROVIDER", "openai")
    monkeypatch.setattr(config, "OPENAI_API_KEY", "sk-test")
