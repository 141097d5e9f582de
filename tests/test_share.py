from __future__ import annotations

import io
from dataclasses import replace

from PIL import Image

from blockguide.models import default_guide
from blockguide.services.share_service import qr_png, share_url


def test_share_url_prefers_custom_url() -> None:
    guide = default_guide("g1")
    assert share_url(guide, "http://localhost:8000/") == "http://localhost:8000/guide/g1"
    published = replace(guide, status="published", custom_url="intro")
    assert share_url(published, "https://guides.example.com") == "https://guides.example.com/guide/intro"


def test_qr_png_is_a_png_image() -> None:
    data = qr_png("https://guides.example.com/guide/intro")
    assert data.startswith(b"\x89PNG")
    img = Image.open(io.BytesIO(data))
    assert img.width == img.height
    assert img.width > 0
