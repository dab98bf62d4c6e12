from __future__ import annotations

import asyncio
import logging

from ..errors import InvalidInputError
from ..images import DeriveOptions, derive_image
from ..preview import build_preview
from ..repositories import JournalStore
from ..repositories.base import new_id, utcnow
from ..schemas import Entry, Media, PreviewBundle, UploadedFile
from ..storage import MediaStorage, remove_quietly, write_atomic

LOGGER = logging.getLogger(__name__)


class JournalService:
    """Service layer for the flows that span the store and media storage."""

    def __init__(
        self,
        store: JournalStore,
        media: MediaStorage,
        derive_options: DeriveOptions | None = None,
    ):
        self._store = store
        self._media = media
        self._derive_options = derive_options or DeriveOptions()

    async def upload_media(
        self, owner_id: str, entry_id: str, files: list[UploadedFile]
    ) -> list[Media]:
        """
        Store each upload with its derived variant and attach it to the entry.

        Files are processed in order. A failure on one file stops the batch;
        files already processed stay attached. Returns the new media, most
        recent first.
        """
        await self._store.get_entry(owner_id, entry_id)

        created: list[Media] = []
        for upload in files:
            created.append(await self._store_one(owner_id, entry_id, upload))
        created.reverse()
        return created

    async def _store_one(self, owner_id: str, entry_id: str, upload: UploadedFile) -> Media:
        content_type = (upload.content_type or "").lower()
        if not content_type.startswith("image/"):
            LOGGER.warning("Rejected upload %s with content type %s", upload.filename, content_type or "none")
            raise InvalidInputError("Only image uploads are supported", filename=upload.filename)

        original_name, derived_name = self._media.new_name(upload.filename)
        original_path = self._media.original_path(owner_id, entry_id, original_name)
        await asyncio.to_thread(write_atomic, original_path, upload.data)

        try:
            derived = await asyncio.to_thread(derive_image, upload.data, self._derive_options)
        except InvalidInputError as exc:
            remove_quietly(original_path)
            exc.filename = upload.filename
            LOGGER.warning("Could not decode upload %s: %s", upload.filename, exc)
            raise

        derived_path = self._media.derived_path(owner_id, entry_id, derived_name)
        await asyncio.to_thread(write_atomic, derived_path, derived)

        media = Media(
            id=new_id(),
            original_url=self._media.original_url(owner_id, entry_id, original_name),
            derived_url=self._media.derived_url(owner_id, entry_id, derived_name),
            original_name=upload.filename,
            created_at=utcnow(),
        )
        await self._store.add_media(owner_id, entry_id, media)
        return media

    async def preview(self, owner_id: str, entry_id: str) -> PreviewBundle:
        """Compose a fresh preview for the entry and cache it on the entry."""
        entry = await self._store.get_entry(owner_id, entry_id)
        journal = await self._store.get_journal(owner_id, entry.journal_id)
        bundle = build_preview(entry, len(entry.media), journal)
        await self._store.cache_preview(owner_id, entry_id, bundle)
        return bundle

    async def approve(
        self,
        owner_id: str,
        entry_id: str,
        *,
        template_id: str,
        title: str,
        description: str = "",
    ) -> Entry:
        return await self._store.approve_entry(
            owner_id,
            entry_id,
            template_id=template_id,
            title=title,
            description=description,
        )
