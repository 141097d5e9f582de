from __future__ import annotations

import io
import logging

import qrcode
from fastapi.responses import Response
from PIL import Image

from ..config import public_base_url
from ..models import Guide
from ..state import AppState

logger = logging.getLogger("blockguide.share_service")


def share_url(guide: Guide, base: str) -> str:
    """Public viewer link: /guide/<custom url or id>."""
    return f"{base.rstrip('/')}/guide/{guide.custom_url or guide.id}"


def qr_png(url: str) -> bytes:
    qr = qrcode.QRCode(border=1)
    qr.add_data(url)
    qr.make(fit=True)
    # Black modules on white background.
    img = qr.make_image(fill_color=(0, 0, 0, 255), back_color=(255, 255, 255, 255))
    if not isinstance(img, Image.Image):
        img = img.get_image()  # type: ignore[attr-defined]
    img = img.convert("RGBA")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def share_info(state: AppState, guide_id: str, request_base: str) -> dict | Response:
    guide = state.store.load_guide(guide_id)
    if guide is None:
        return Response(status_code=404, content=f"Guide not found: {guide_id}", media_type="text/plain")
    base = public_base_url(request_base)
    return {
        "url": share_url(guide, base),
        "qr": f"{base}/api/guides/{guide.id}/qr.png",
        "title": guide.title,
        "status": guide.status,
    }


def share_qr(state: AppState, guide_id: str, request_base: str) -> Response:
    guide = state.store.load_guide(guide_id)
    if guide is None:
        return Response(status_code=404, content=f"Guide not found: {guide_id}", media_type="text/plain")
    url = share_url(guide, public_base_url(request_base))
    logger.info("Generating share QR for %s -> %s", guide.id, url)
    # QR follows custom URL changes, so never cache it.
    return Response(content=qr_png(url), media_type="image/png", headers={"Cache-Control": "no-store"})
