"""Shared fixtures for the preprocessor tests."""

import io
from pathlib import Path

import pytest
import requests
from PIL import Image

from svelte_image.config import ImageConfig


class FakeResponse:
    """Minimal stand-in for ``requests.Response``."""

    def __init__(self, content=b"", content_type="image/png", status_code=200):
        self.content = content
        self.headers = {"Content-Type": content_type}
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    """Records requested URLs and answers with a canned response."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        return self.response


class ForbiddenSession:
    """Fails the test if any request is attempted."""

    def get(self, url, timeout=None):
        raise AssertionError(f"Unexpected request to {url}")


def png_bytes(size=(40, 30), color=(10, 120, 200)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def public_dir(tmp_path) -> Path:
    directory = tmp_path / "static"
    directory.mkdir()
    return directory


@pytest.fixture
def make_image(public_dir):
    """Factory writing a solid-colour image under the public dir."""

    def _make(name="photo.jpg", size=(1600, 900), color=(200, 100, 50), image_format=None):
        path = public_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        mode = "RGBA" if (image_format or "").upper() == "PNG" and len(color) == 4 else "RGB"
        Image.new(mode, size, color).save(path, format=image_format)
        return path

    return _make


@pytest.fixture
def config(public_dir) -> ImageConfig:
    """Config pointing at the temporary public dir with placeholders off."""
    return ImageConfig(public_dir=public_dir, placeholder=None)
