import base64
import io

import pytest
from PIL import Image

import config
from modules.imaging import ImageRejected, decode_data_url, load_data_url, load_image
from tests.conftest import make_image_bytes


def _pixel(payload, xy):
    return Image.open(io.BytesIO(payload.data)).convert("RGB").getpixel(xy)


def test_jpeg_upload_normalised(jpeg_bytes):
    payload = load_image(jpeg_bytes)
    assert payload.mime_type == "image/jpeg"
    assert (payload.width, payload.height) == (64, 48)
    assert payload.source == "upload"
    assert payload.to_data_url().startswith("data:image/jpeg;base64,")


def test_png_converted_to_jpeg(png_bytes):
    payload = load_image(png_bytes)
    assert payload.data[:2] == b"\xff\xd8"


def test_multi_picture_phone_jpeg_accepted():
    frames = [Image.new("RGB", (64, 48), c) for c in ((200, 160, 140), (10, 20, 30))]
    buf = io.BytesIO()
    frames[0].save(buf, format="MPO", save_all=True, append_images=frames[1:])
    raw = buf.getvalue()
    assert Image.open(io.BytesIO(raw)).format == "MPO"

    payload = load_image(raw)
    assert payload.mime_type == "image/jpeg"
    assert (payload.width, payload.height) == (64, 48)
    assert _pixel(payload, (10, 10))[0] > 150


def test_non_image_rejected():
    with pytest.raises(ImageRejected):
        load_image(b"%PDF-1.4 definitely not an image")


def test_empty_rejected():
    with pytest.raises(ImageRejected):
        load_image(b"")


def test_oversized_rejected(monkeypatch, jpeg_bytes):
    monkeypatch.setattr(config, "MAX_IMAGE_BYTES", len(jpeg_bytes) - 1)
    with pytest.raises(ImageRejected, match="too large"):
        load_image(jpeg_bytes)


def test_large_image_downscaled(monkeypatch):
    monkeypatch.setattr(config, "MAX_IMAGE_EDGE", 100)
    payload = load_image(make_image_bytes(size=(400, 200)))
    assert max(payload.width, payload.height) == 100


def test_mirror_flips_horizontally():
    image = Image.new("RGB", (40, 20), (0, 0, 255))
    image.paste((255, 0, 0), (0, 0, 20, 20))
    buf = io.BytesIO()
    image.save(buf, format="PNG")

    plain = load_image(buf.getvalue())
    mirrored = load_image(buf.getvalue(), mirror=True)

    assert _pixel(plain, (5, 10))[0] > 200
    assert _pixel(mirrored, (5, 10))[2] > 200


def test_data_url_round_trip(jpeg_bytes):
    url = "data:image/jpeg;base64," + base64.b64encode(jpeg_bytes).decode()
    payload = load_data_url(url)
    assert payload.source == "camera"


def test_data_url_requires_image_header(jpeg_bytes):
    url = "data:text/plain;base64," + base64.b64encode(jpeg_bytes).decode()
    with pytest.raises(ImageRejected):
        decode_data_url(url)


def test_data_url_bad_base64():
    with pytest.raises(ImageRejected):
        decode_data_url("data:image/jpeg;base64,@@@not-base64@@@")
