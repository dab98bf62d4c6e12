import io
from contextlib import asynccontextmanager

import httpx
from PIL import Image

from jj_api.main import app, get_media_storage, get_store
from jj_api.owner import COOKIE_NAME, get_owner_id

OWNER_ID = "owner_aaaaaaaaaaaaaaaa"
OTHER_OWNER_ID = "owner_bbbbbbbbbbbbbbbb"


def image_bytes(
    size: tuple[int, int] = (64, 48),
    color: tuple[int, int, int] = (200, 80, 40),
    fmt: str = "PNG",
    **save_kwargs,
) -> bytes:
    image = Image.new("RGB", size, color)
    out = io.BytesIO()
    image.save(out, format=fmt, **save_kwargs)
    return out.getvalue()


def image_file(name: str = "photo.png", **kwargs) -> tuple[str, tuple[str, bytes, str]]:
    return ("files", (name, image_bytes(**kwargs), "image/png"))


@asynccontextmanager
async def app_client(store, media, owner_id: str | None = OWNER_ID):
    """Client against the app with the store and media root swapped in.

    ``owner_id=None`` leaves cookie-based owner resolution in place.
    """

    async def override_get_owner_id():
        return owner_id

    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_media_storage] = lambda: media
    if owner_id is not None:
        app.dependency_overrides[get_owner_id] = override_get_owner_id
    transport = httpx.ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides.clear()


def cookie_token(response: httpx.Response) -> str | None:
    """Owner token from the response's Set-Cookie header, if one was issued."""
    header = response.headers.get("set-cookie", "")
    prefix = f"{COOKIE_NAME}="
    if not header.startswith(prefix):
        return None
    return header[len(prefix):].split(";", 1)[0]
