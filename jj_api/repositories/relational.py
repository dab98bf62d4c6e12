from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .. import models
from ..errors import NotFoundError
from ..schemas import (
    BookView,
    Entry,
    EntryTextUpdate,
    EntryVersion,
    InviteCreate,
    Journal,
    JournalCreate,
    JournalUpdate,
    Media,
    PreviewBundle,
    Share,
    ShareCreate,
    ShareInvite,
)
from .base import (
    ApprovalPolicy,
    JournalStore,
    OwnerLocks,
    build_book,
    is_valid_slug,
    new_slug,
    utcnow,
    validate_approval,
    validate_fields,
)

LOGGER = logging.getLogger(__name__)


def _aware(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _journal_to_schema(row: models.Journal) -> Journal:
    return Journal(
        id=row.id,
        title=row.title,
        theme_family=row.theme_family,
        page_size=row.page_size,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
        deleted_at=_aware(row.deleted_at),
    )


def _media_to_schema(row: models.MediaAsset) -> Media:
    return Media(
        id=row.id,
        original_url=row.original_url,
        derived_url=row.derived_url,
        original_name=row.original_name,
        created_at=_aware(row.created_at),
    )


def _entry_to_schema(row: models.Entry, media: list[models.MediaAsset]) -> Entry:
    return Entry(
        id=row.id,
        journal_id=row.journal_id,
        status=row.status,
        title_final=row.title_final,
        desc_final=row.desc_final,
        approved_template_id=row.approved_template_id,
        current_version=row.current_version,
        approved_at=_aware(row.approved_at),
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
        media=[_media_to_schema(item) for item in media],
        last_preview=PreviewBundle.model_validate(row.last_preview) if row.last_preview else None,
    )


def _version_to_schema(row: models.EntryVersion) -> EntryVersion:
    return EntryVersion(
        entry_id=row.entry_id,
        version_num=row.version_num,
        template_id=row.template_id,
        title_final=row.title_final,
        desc_final=row.desc_final,
        approved_at=_aware(row.approved_at),
    )


def _invite_to_schema(row: models.ShareInvite) -> ShareInvite:
    return ShareInvite(
        id=row.id,
        share_id=row.share_id,
        invite_slug=row.invite_slug,
        email=row.email,
        created_at=_aware(row.created_at),
        revoked_at=_aware(row.revoked_at),
    )


def _share_to_schema(row: models.Share, invites: list[models.ShareInvite]) -> Share:
    return Share(
        id=row.id,
        journal_id=row.journal_id,
        mode=row.mode,
        slug=row.slug,
        enabled=row.enabled,
        created_at=_aware(row.created_at),
        revoked_at=_aware(row.revoked_at),
        invites=[_invite_to_schema(item) for item in invites],
    )


class RelationalStore(JournalStore):
    """SQLAlchemy-backed store; every approval appends an immutable version row."""

    approval_policy = ApprovalPolicy.HISTORY

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self._sessionmaker = sessionmaker
        self._locks = OwnerLocks()

    # -------------------------------------------------------------------------
    # Row helpers
    # -------------------------------------------------------------------------

    async def _journal_row(
        self, session: AsyncSession, owner_id: str, journal_id: str
    ) -> models.Journal:
        result = await session.execute(
            select(models.Journal).where(
                models.Journal.id == journal_id,
                models.Journal.owner_id == owner_id,
                models.Journal.deleted_at.is_(None),
            )
        )
        journal = result.scalar_one_or_none()
        if journal is None:
            raise NotFoundError("Journal not found")
        return journal

    async def _entry_row(self, session: AsyncSession, owner_id: str, entry_id: str) -> models.Entry:
        result = await session.execute(
            select(models.Entry).where(
                models.Entry.id == entry_id, models.Entry.owner_id == owner_id
            )
        )
        entry = result.scalar_one_or_none()
        if entry is None:
            raise NotFoundError("Entry not found")
        return entry

    async def _share_row(self, session: AsyncSession, owner_id: str, share_id: str) -> models.Share:
        result = await session.execute(
            select(models.Share).where(
                models.Share.id == share_id, models.Share.owner_id == owner_id
            )
        )
        share = result.scalar_one_or_none()
        if share is None:
            raise NotFoundError("Share not found")
        return share

    async def _media_by_entry(
        self, session: AsyncSession, entry_ids: list[str]
    ) -> dict[str, list[models.MediaAsset]]:
        grouped: dict[str, list[models.MediaAsset]] = defaultdict(list)
        if not entry_ids:
            return grouped
        result = await session.execute(
            select(models.MediaAsset)
            .where(models.MediaAsset.entry_id.in_(entry_ids))
            .order_by(models.MediaAsset.created_at.desc())
        )
        for item in result.scalars().all():
            grouped[item.entry_id].append(item)
        return grouped

    async def _entry_schema(self, session: AsyncSession, entry: models.Entry) -> Entry:
        media = await self._media_by_entry(session, [entry.id])
        return _entry_to_schema(entry, media[entry.id])

    async def _entries_for_journal(
        self, session: AsyncSession, owner_id: str, journal_id: str
    ) -> list[Entry]:
        result = await session.execute(
            select(models.Entry)
            .where(models.Entry.owner_id == owner_id, models.Entry.journal_id == journal_id)
            .order_by(models.Entry.created_at.desc())
        )
        entries = list(result.scalars().all())
        media = await self._media_by_entry(session, [entry.id for entry in entries])
        return [_entry_to_schema(entry, media[entry.id]) for entry in entries]

    # -------------------------------------------------------------------------
    # Journals
    # -------------------------------------------------------------------------

    async def ensure_owner(self, owner_id: str) -> None:
        # Owners are implicit; rows are keyed by owner id.
        return None

    async def list_journals(self, owner_id: str) -> list[Journal]:
        async with self._sessionmaker() as session:
            result = await session.execute(
                select(models.Journal)
                .where(models.Journal.owner_id == owner_id, models.Journal.deleted_at.is_(None))
                .order_by(models.Journal.created_at.desc())
            )
            return [_journal_to_schema(row) for row in result.scalars().all()]

    async def get_journal(self, owner_id: str, journal_id: str) -> Journal:
        async with self._sessionmaker() as session:
            return _journal_to_schema(await self._journal_row(session, owner_id, journal_id))

    async def create_journal(
        self, owner_id: str, *, title: str, theme_family: str, page_size: str
    ) -> Journal:
        payload = validate_fields(
            JournalCreate,
            {"title": title, "theme_family": theme_family, "page_size": page_size},
        )
        now = utcnow()
        async with self._locks.get(owner_id), self._sessionmaker() as session:
            journal = models.Journal(
                owner_id=owner_id,
                title=payload.title,
                theme_family=payload.theme_family,
                page_size=payload.page_size,
                created_at=now,
                updated_at=now,
            )
            session.add(journal)
            await session.commit()
            return _journal_to_schema(journal)

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
        async with self._locks.get(owner_id), self._sessionmaker() as session:
            journal = await self._journal_row(session, owner_id, journal_id)
            if changes:
                for key, value in changes.items():
                    setattr(journal, key, value)
                journal.updated_at = utcnow()
                await session.commit()
            return _journal_to_schema(journal)

    async def delete_journal(self, owner_id: str, journal_id: str) -> bool:
        async with self._locks.get(owner_id), self._sessionmaker() as session:
            try:
                journal = await self._journal_row(session, owner_id, journal_id)
            except NotFoundError:
                return False
            now = utcnow()
            journal.deleted_at = now
            journal.updated_at = now
            await session.commit()
            return True

    # -------------------------------------------------------------------------
    # Entries
    # -------------------------------------------------------------------------

    async def list_entries(self, owner_id: str, journal_id: str) -> list[Entry]:
        async with self._sessionmaker() as session:
            return await self._entries_for_journal(session, owner_id, journal_id)

    async def get_entry(self, owner_id: str, entry_id: str) -> Entry:
        async with self._sessionmaker() as session:
            entry = await self._entry_row(session, owner_id, entry_id)
            return await self._entry_schema(session, entry)

    async def create_entry(self, owner_id: str, journal_id: str) -> Entry:
        async with self._locks.get(owner_id), self._sessionmaker() as session:
            await self._journal_row(session, owner_id, journal_id)
            now = utcnow()
            entry = models.Entry(
                owner_id=owner_id,
                journal_id=journal_id,
                status="draft",
                current_version=0,
                created_at=now,
                updated_at=now,
            )
            session.add(entry)
            await session.commit()
            return _entry_to_schema(entry, [])

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
        async with self._locks.get(owner_id), self._sessionmaker() as session:
            entry = await self._entry_row(session, owner_id, entry_id)
            if changes:
                for key, value in changes.items():
                    setattr(entry, key, value)
                entry.updated_at = utcnow()
                await session.commit()
            return await self._entry_schema(session, entry)

    async def add_media(self, owner_id: str, entry_id: str, media: Media) -> Entry:
        async with self._locks.get(owner_id), self._sessionmaker() as session:
            entry = await self._entry_row(session, owner_id, entry_id)
            session.add(
                models.MediaAsset(
                    id=media.id,
                    owner_id=owner_id,
                    entry_id=entry_id,
                    original_url=media.original_url,
                    derived_url=media.derived_url,
                    original_name=media.original_name,
                    created_at=media.created_at,
                )
            )
            entry.updated_at = utcnow()
            await session.commit()
            return await self._entry_schema(session, entry)

    async def cache_preview(self, owner_id: str, entry_id: str, bundle: PreviewBundle) -> Entry:
        async with self._locks.get(owner_id), self._sessionmaker() as session:
            entry = await self._entry_row(session, owner_id, entry_id)
            entry.last_preview = bundle.model_dump(mode="json", by_alias=True)
            entry.updated_at = utcnow()
            await session.commit()
            return await self._entry_schema(session, entry)

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
        async with self._locks.get(owner_id), self._sessionmaker() as session:
            entry = await self._entry_row(session, owner_id, entry_id)
            latest = await session.scalar(
                select(func.max(models.EntryVersion.version_num)).where(
                    models.EntryVersion.entry_id == entry_id
                )
            )
            next_version = (latest or 0) + 1
            now = utcnow()
            session.add(
                models.EntryVersion(
                    owner_id=owner_id,
                    entry_id=entry_id,
                    version_num=next_version,
                    template_id=request.template_id,
                    title_final=request.title,
                    desc_final=request.description,
                    approved_at=now,
                )
            )
            entry.status = "approved"
            entry.approved_template_id = request.template_id
            entry.title_final = request.title
            entry.desc_final = request.description
            entry.current_version = next_version
            entry.approved_at = now
            entry.updated_at = now
            await session.commit()
            LOGGER.info("Entry %s approved as version %s", entry_id, next_version)
            return await self._entry_schema(session, entry)

    async def list_versions(self, owner_id: str, entry_id: str) -> list[EntryVersion]:
        async with self._sessionmaker() as session:
            await self._entry_row(session, owner_id, entry_id)
            result = await session.execute(
                select(models.EntryVersion)
                .where(models.EntryVersion.entry_id == entry_id)
                .order_by(models.EntryVersion.version_num.desc())
            )
            return [_version_to_schema(row) for row in result.scalars().all()]

    # -------------------------------------------------------------------------
    # Shares
    # -------------------------------------------------------------------------

    async def create_share(self, owner_id: str, journal_id: str, mode: str) -> Share:
        payload = validate_fields(ShareCreate, {"journal_id": journal_id, "mode": mode})
        async with self._locks.get(owner_id), self._sessionmaker() as session:
            await self._journal_row(session, owner_id, payload.journal_id)
            share = models.Share(
                owner_id=owner_id,
                journal_id=payload.journal_id,
                mode=payload.mode,
                slug=new_slug(),
                enabled=True,
                created_at=utcnow(),
            )
            session.add(share)
            await session.commit()
            LOGGER.info("Created %s share for journal %s", share.mode, share.journal_id)
            return _share_to_schema(share, [])

    async def _invites_by_share(
        self, session: AsyncSession, share_ids: list[str]
    ) -> dict[str, list[models.ShareInvite]]:
        grouped: dict[str, list[models.ShareInvite]] = defaultdict(list)
        if not share_ids:
            return grouped
        result = await session.execute(
            select(models.ShareInvite)
            .where(models.ShareInvite.share_id.in_(share_ids))
            .order_by(models.ShareInvite.created_at.asc())
        )
        for item in result.scalars().all():
            grouped[item.share_id].append(item)
        return grouped

    async def list_shares(self, owner_id: str, journal_id: str) -> list[Share]:
        async with self._sessionmaker() as session:
            result = await session.execute(
                select(models.Share)
                .where(models.Share.owner_id == owner_id, models.Share.journal_id == journal_id)
                .order_by(models.Share.created_at.asc())
            )
            shares = list(result.scalars().all())
            invites = await self._invites_by_share(session, [share.id for share in shares])
            return [_share_to_schema(share, invites[share.id]) for share in shares]

    async def revoke_share(self, owner_id: str, share_id: str) -> Share:
        async with self._locks.get(owner_id), self._sessionmaker() as session:
            share = await self._share_row(session, owner_id, share_id)
            if share.revoked_at is None:
                share.revoked_at = utcnow()
            share.enabled = False
            await session.commit()
            invites = await self._invites_by_share(session, [share.id])
            return _share_to_schema(share, invites[share.id])

    async def create_invite(
        self, owner_id: str, share_id: str, email: str | None = None
    ) -> ShareInvite:
        payload = validate_fields(InviteCreate, {"share_id": share_id, "email": email})
        async with self._locks.get(owner_id), self._sessionmaker() as session:
            share = await self._share_row(session, owner_id, payload.share_id)
            if not share.enabled or share.revoked_at is not None:
                raise NotFoundError("Share not found")
            invite = models.ShareInvite(
                share_id=share.id,
                email=payload.email,
                invite_slug=new_slug(),
                created_at=utcnow(),
            )
            session.add(invite)
            await session.commit()
            return _invite_to_schema(invite)

    async def revoke_invite(self, owner_id: str, invite_id: str) -> ShareInvite:
        async with self._locks.get(owner_id), self._sessionmaker() as session:
            result = await session.execute(
                select(models.ShareInvite)
                .join(models.Share, models.Share.id == models.ShareInvite.share_id)
                .where(models.ShareInvite.id == invite_id, models.Share.owner_id == owner_id)
            )
            invite = result.scalar_one_or_none()
            if invite is None:
                raise NotFoundError("Invite not found")
            if invite.revoked_at is None:
                invite.revoked_at = utcnow()
                await session.commit()
            return _invite_to_schema(invite)

    async def _shared_book(self, session: AsyncSession, share: models.Share) -> BookView:
        result = await session.execute(
            select(models.Journal).where(
                models.Journal.id == share.journal_id, models.Journal.deleted_at.is_(None)
            )
        )
        journal = result.scalar_one_or_none()
        if journal is None:
            raise NotFoundError("Not found")
        entries = await self._entries_for_journal(session, share.owner_id, journal.id)
        return build_book(_journal_to_schema(journal), entries)

    async def resolve_public_share(self, slug: str) -> BookView:
        if not is_valid_slug(slug):
            raise NotFoundError("Not found")
        async with self._sessionmaker() as session:
            result = await session.execute(
                select(models.Share).where(
                    models.Share.slug == slug,
                    models.Share.mode == "public",
                    models.Share.enabled.is_(True),
                    models.Share.revoked_at.is_(None),
                )
            )
            share = result.scalar_one_or_none()
            if share is None:
                raise NotFoundError("Not found")
            return await self._shared_book(session, share)

    async def resolve_invite(self, invite_slug: str) -> BookView:
        if not is_valid_slug(invite_slug):
            raise NotFoundError("Not found")
        async with self._sessionmaker() as session:
            result = await session.execute(
                select(models.Share)
                .join(models.ShareInvite, models.ShareInvite.share_id == models.Share.id)
                .where(
                    models.ShareInvite.invite_slug == invite_slug,
                    models.ShareInvite.revoked_at.is_(None),
                    models.Share.enabled.is_(True),
                    models.Share.revoked_at.is_(None),
                )
            )
            share = result.scalar_one_or_none()
            if share is None:
                raise NotFoundError("Not found")
            return await self._shared_book(session, share)
