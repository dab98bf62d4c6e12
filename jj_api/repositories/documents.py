from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Literal

from pydantic import ValidationError as PydanticValidationError

from ..errors import NotFoundError, StorageFailure
from ..schemas import (
    BookView,
    CamelModel,
    Entry,
    EntryTextUpdate,
    EntryVersion,
    InviteCreate,
    Journal,
    JournalCreate,
    JournalUpdate,
    Media,
    OwnerDocument,
    PreviewBundle,
    Share,
    ShareCreate,
    ShareInvite,
)
from ..storage import read_bytes, write_atomic
from .base import (
    ApprovalPolicy,
    JournalStore,
    OwnerLocks,
    build_book,
    is_valid_slug,
    new_id,
    new_slug,
    utcnow,
    validate_approval,
    validate_fields,
)

LOGGER = logging.getLogger(__name__)


class SlugPointer(CamelModel):
    owner_id: str
    kind: Literal["share", "invite"]


def _find_journal(doc: OwnerDocument, journal_id: str) -> Journal | None:
    return next(
        (journal for journal in doc.journals if journal.id == journal_id and journal.deleted_at is None),
        None,
    )


def _find_entry(doc: OwnerDocument, entry_id: str) -> Entry:
    entry = next((entry for entry in doc.entries if entry.id == entry_id), None)
    if entry is None:
        raise NotFoundError("Entry not found")
    return entry


def _find_share(doc: OwnerDocument, share_id: str) -> Share:
    share = next((share for share in doc.shares if share.id == share_id), None)
    if share is None:
        raise NotFoundError("Share not found")
    return share


class DocumentStore(JournalStore):
    """One JSON document per owner, rewritten in full on every mutation.

    Layout under ``root``::

        owners/<owner>.json   journals, entries (with embedded media), shares
        slugs/<slug>.json     {"ownerId", "kind"} pointer for share resolution

    Approving an entry again overwrites the previous approval.
    """

    approval_policy = ApprovalPolicy.OVERWRITE

    def __init__(self, root: Path | str):
        self.root = Path(root)
        self._locks = OwnerLocks()

    def _owner_path(self, owner_id: str) -> Path:
        return self.root / "owners" / f"{owner_id}.json"

    def _slug_path(self, slug: str) -> Path:
        return self.root / "slugs" / f"{slug}.json"

    def _parse(self, owner_id: str, raw: bytes) -> OwnerDocument:
        try:
            return OwnerDocument.model_validate_json(raw)
        except PydanticValidationError as exc:
            LOGGER.error("Owner document for %s could not be parsed", owner_id)
            raise StorageFailure("Owner document is unreadable") from exc

    async def _save(self, doc: OwnerDocument) -> None:
        data = doc.model_dump_json(by_alias=True, indent=2).encode("utf-8")
        await asyncio.to_thread(write_atomic, self._owner_path(doc.owner_id), data)

    async def _load(self, owner_id: str) -> OwnerDocument:
        # Caller holds the owner lock. A fresh document is only written by
        # the mutation that changes it.
        raw = await asyncio.to_thread(read_bytes, self._owner_path(owner_id))
        if raw is not None:
            return self._parse(owner_id, raw)
        return OwnerDocument(owner_id=owner_id, created_at=utcnow())

    async def _read(self, owner_id: str) -> OwnerDocument:
        raw = await asyncio.to_thread(read_bytes, self._owner_path(owner_id))
        if raw is not None:
            return self._parse(owner_id, raw)
        async with self._locks.get(owner_id):
            raw = await asyncio.to_thread(read_bytes, self._owner_path(owner_id))
            if raw is not None:
                return self._parse(owner_id, raw)
            doc = OwnerDocument(owner_id=owner_id, created_at=utcnow())
            await self._save(doc)
            return doc

    async def _read_existing(self, owner_id: str) -> OwnerDocument | None:
        raw = await asyncio.to_thread(read_bytes, self._owner_path(owner_id))
        return self._parse(owner_id, raw) if raw is not None else None

    async def _write_pointer(self, slug: str, owner_id: str, kind: str) -> None:
        pointer = SlugPointer(owner_id=owner_id, kind=kind)
        data = pointer.model_dump_json(by_alias=True).encode("utf-8")
        await asyncio.to_thread(write_atomic, self._slug_path(slug), data)

    async def _read_pointer(self, slug: str, kind: str) -> SlugPointer:
        if not is_valid_slug(slug):
            raise NotFoundError("Not found")
        raw = await asyncio.to_thread(read_bytes, self._slug_path(slug))
        if raw is None:
            raise NotFoundError("Not found")
        try:
            pointer = SlugPointer.model_validate_json(raw)
        except PydanticValidationError as exc:
            raise StorageFailure("Share pointer is unreadable") from exc
        if pointer.kind != kind:
            raise NotFoundError("Not found")
        return pointer

    # -------------------------------------------------------------------------
    # Journals
    # -------------------------------------------------------------------------

    async def ensure_owner(self, owner_id: str) -> None:
        await self._read(owner_id)

    async def list_journals(self, owner_id: str) -> list[Journal]:
        doc = await self._read(owner_id)
        return [journal for journal in doc.journals if journal.deleted_at is None]

    async def get_journal(self, owner_id: str, journal_id: str) -> Journal:
        journal = _find_journal(await self._read(owner_id), journal_id)
        if journal is None:
            raise NotFoundError("Journal not found")
        return journal

    async def create_journal(
        self, owner_id: str, *, title: str, theme_family: str, page_size: str
    ) -> Journal:
        payload = validate_fields(
            JournalCreate,
            {"title": title, "theme_family": theme_family, "page_size": page_size},
        )
        now = utcnow()
        journal = Journal(
            id=new_id(),
            title=payload.title,
            theme_family=payload.theme_family,
            page_size=payload.page_size,
            created_at=now,
            updated_at=now,
        )
        async with self._locks.get(owner_id):
            doc = await self._load(owner_id)
            doc.journals.insert(0, journal)
            await self._save(doc)
        return journal

    async def update_journal(
        self,
        owner_id: str,
        journal_id: str,
        *,
        title: str | None = None,
        theme_family: str | None = None,
        page_size: str | None = None,
    ) -> Journal:
        payload = validate_fields(
            JournalUpdate,
            {"title": title, "theme_family": theme_family, "page_size": page_size},
        )
        changes = payload.model_dump(exclude_none=True)
        async with self._locks.get(owner_id):
            doc = await self._load(owner_id)
            journal = _find_journal(doc, journal_id)
            if journal is None:
                raise NotFoundError("Journal not found")
            if changes:
                for key, value in changes.items():
                    setattr(journal, key, value)
                journal.updated_at = utcnow()
                await self._save(doc)
        return journal

    async def delete_journal(self, owner_id: str, journal_id: str) -> bool:
        async with self._locks.get(owner_id):
            doc = await self._load(owner_id)
            journal = _find_journal(doc, journal_id)
            if journal is None:
                return False
            now = utcnow()
            journal.deleted_at = now
            journal.updated_at = now
            await self._save(doc)
        return True

    # -------------------------------------------------------------------------
    # Entries
    # -------------------------------------------------------------------------

    async def list_entries(self, owner_id: str, journal_id: str) -> list[Entry]:
        # Entries of soft-deleted journals are still listed.
        doc = await self._read(owner_id)
        return [entry for entry in doc.entries if entry.journal_id == journal_id]

    async def get_entry(self, owner_id: str, entry_id: str) -> Entry:
        return _find_entry(await self._read(owner_id), entry_id)

    async def create_entry(self, owner_id: str, journal_id: str) -> Entry:
        async with self._locks.get(owner_id):
            doc = await self._load(owner_id)
            if _find_journal(doc, journal_id) is None:
                raise NotFoundError("Journal not found")
            now = utcnow()
            entry = Entry(id=new_id(), journal_id=journal_id, created_at=now, updated_at=now)
            doc.entries.insert(0, entry)
            await self._save(doc)
        return entry

    async def update_entry_text(
        self,
        owner_id: str,
        entry_id: str,
        *,
        title_final: str | None = None,
        desc_final: str | None = None,
    ) -> Entry:
        payload = validate_fields(
            EntryTextUpdate, {"title_final": title_final, "desc_final": desc_final}
        )
        changes = payload.model_dump(exclude_none=True)
        async with self._locks.get(owner_id):
            doc = await self._load(owner_id)
            entry = _find_entry(doc, entry_id)
            if changes:
                for key, value in changes.items():
                    setattr(entry, key, value)
                entry.updated_at = utcnow()
                await self._save(doc)
        return entry

    async def add_media(self, owner_id: str, entry_id: str, media: Media) -> Entry:
        async with self._locks.get(owner_id):
            doc = await self._load(owner_id)
            entry = _find_entry(doc, entry_id)
            entry.media.insert(0, media)
            entry.updated_at = utcnow()
            await self._save(doc)
        return entry

    async def cache_preview(self, owner_id: str, entry_id: str, bundle: PreviewBundle) -> Entry:
        async with self._locks.get(owner_id):
            doc = await self._load(owner_id)
            entry = _find_entry(doc, entry_id)
            entry.last_preview = bundle
            entry.updated_at = utcnow()
            await self._save(doc)
        return entry

    async def approve_entry(
        self,
        owner_id: str,
        entry_id: str,
        *,
        template_id: str,
        title: str,
        description: str = "",
    ) -> Entry:
        request = validate_approval(template_id, title, description)
        async with self._locks.get(owner_id):
            doc = await self._load(owner_id)
            entry = _find_entry(doc, entry_id)
            now = utcnow()
            entry.status = "approved"
            entry.approved_template_id = request.template_id
            entry.title_final = request.title
            entry.desc_final = request.description
            entry.current_version = 1
            entry.approved_at = now
            entry.updated_at = now
            await self._save(doc)
        return entry

    async def list_versions(self, owner_id: str, entry_id: str) -> list[EntryVersion]:
        entry = await self.get_entry(owner_id, entry_id)
        if entry.status != "approved" or entry.approved_at is None:
            return []
        return [
            EntryVersion(
                entry_id=entry.id,
                version_num=entry.current_version,
                template_id=entry.approved_template_id or "",
                title_final=entry.title_final or "",
                desc_final=entry.desc_final or "",
                approved_at=entry.approved_at,
            )
        ]

    # -------------------------------------------------------------------------
    # Shares
    # -------------------------------------------------------------------------

    async def create_share(self, owner_id: str, journal_id: str, mode: str) -> Share:
        payload = validate_fields(ShareCreate, {"journal_id": journal_id, "mode": mode})
        async with self._locks.get(owner_id):
            doc = await self._load(owner_id)
            if _find_journal(doc, payload.journal_id) is None:
                raise NotFoundError("Journal not found")
            share = Share(
                id=new_id(),
                journal_id=payload.journal_id,
                mode=payload.mode,
                slug=new_slug(),
                created_at=utcnow(),
            )
            await self._write_pointer(share.slug, owner_id, "share")
            doc.shares.append(share)
            await self._save(doc)
        LOGGER.info("Created %s share for journal %s", share.mode, share.journal_id)
        return share

    async def list_shares(self, owner_id: str, journal_id: str) -> list[Share]:
        doc = await self._read(owner_id)
        return [share for share in doc.shares if share.journal_id == journal_id]

    async def revoke_share(self, owner_id: str, share_id: str) -> Share:
        async with self._locks.get(owner_id):
            doc = await self._load(owner_id)
            share = _find_share(doc, share_id)
            if share.revoked_at is None:
                share.revoked_at = utcnow()
            share.enabled = False
            await self._save(doc)
        return share

    async def create_invite(
        self, owner_id: str, share_id: str, email: str | None = None
    ) -> ShareInvite:
        payload = validate_fields(InviteCreate, {"share_id": share_id, "email": email})
        async with self._locks.get(owner_id):
            doc = await self._load(owner_id)
            share = _find_share(doc, payload.share_id)
            if not share.enabled or share.revoked_at is not None:
                raise NotFoundError("Share not found")
            invite = ShareInvite(
                id=new_id(),
                share_id=share.id,
                invite_slug=new_slug(),
                email=payload.email,
                created_at=utcnow(),
            )
            await self._write_pointer(invite.invite_slug, owner_id, "invite")
            share.invites.append(invite)
            await self._save(doc)
        return invite

    async def revoke_invite(self, owner_id: str, invite_id: str) -> ShareInvite:
        async with self._locks.get(owner_id):
            doc = await self._load(owner_id)
            invite = next(
                (invite for share in doc.shares for invite in share.invites if invite.id == invite_id),
                None,
            )
            if invite is None:
                raise NotFoundError("Invite not found")
            if invite.revoked_at is None:
                invite.revoked_at = utcnow()
                await self._save(doc)
        return invite

    def _shared_book(self, doc: OwnerDocument, share: Share) -> BookView:
        journal = _find_journal(doc, share.journal_id)
        if journal is None:
            raise NotFoundError("Not found")
        entries = [entry for entry in doc.entries if entry.journal_id == journal.id]
        return build_book(journal, entries)

    async def resolve_public_share(self, slug: str) -> BookView:
        pointer = await self._read_pointer(slug, "share")
        doc = await self._read_existing(pointer.owner_id)
        share = next((share for share in doc.shares if share.slug == slug), None) if doc else None
        if share is None or share.mode != "public" or not share.enabled or share.revoked_at is not None:
            raise NotFoundError("Not found")
        return self._shared_book(doc, share)

    async def resolve_invite(self, invite_slug: str) -> BookView:
        pointer = await self._read_pointer(invite_slug, "invite")
        doc = await self._read_existing(pointer.owner_id)
        if doc is None:
            raise NotFoundError("Not found")
        for share in doc.shares:
            for invite in share.invites:
                if invite.invite_slug != invite_slug:
                    continue
                if invite.revoked_at is not None or not share.enabled or share.revoked_at is not None:
                    raise NotFoundError("Not found")
                return self._shared_book(doc, share)
        raise NotFoundError("Not found")
