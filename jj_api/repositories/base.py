from __future__ import annotations

import asyncio
import re
import secrets
import weakref
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Any, TypeVar
from uuid import uuid4

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..errors import ValidationError
from ..preview import TEMPLATE_IDS
from ..schemas import (
    ApproveRequest,
    BookPage,
    BookView,
    Entry,
    EntryVersion,
    Journal,
    JournalSummary,
    Media,
    PreviewBundle,
    Share,
    ShareInvite,
)

ModelT = TypeVar("ModelT", bound=BaseModel)

SLUG_PATTERN = re.compile(r"^[A-Za-z0-9_-]{8,64}$")


class ApprovalPolicy(str, Enum):
    """How approving an already-approved entry treats the earlier approval."""

    OVERWRITE = "overwrite"
    HISTORY = "history"


def new_id() -> str:
    return str(uuid4())


def new_slug() -> str:
    return secrets.token_urlsafe(16)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_fields(model: type[ModelT], data: dict[str, Any]) -> ModelT:
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError.from_pydantic(exc) from exc


def validate_approval(template_id: str, title: str, description: str) -> ApproveRequest:
    request = validate_fields(
        ApproveRequest,
        {"template_id": template_id, "title": title, "description": description},
    )
    if request.template_id not in TEMPLATE_IDS:
        raise ValidationError(
            [
                {
                    "loc": ["templateId"],
                    "msg": f"Unknown template; expected one of {', '.join(TEMPLATE_IDS)}",
                    "type": "value_error",
                }
            ]
        )
    return request


def is_valid_slug(slug: str) -> bool:
    return SLUG_PATTERN.fullmatch(slug) is not None


def build_book(journal: Journal, entries: list[Entry]) -> BookView:
    """Project a journal onto its approved entries, oldest first."""
    approved = sorted(
        (entry for entry in entries if entry.status == "approved"),
        key=lambda entry: entry.created_at,
    )
    return BookView(
        journal=JournalSummary(
            id=journal.id,
            title=journal.title,
            theme_family=journal.theme_family,
            page_size=journal.page_size,
        ),
        pages=[
            BookPage(
                entry_id=entry.id,
                title=entry.title_final,
                description=entry.desc_final,
                template_id=entry.approved_template_id,
                version_num=entry.current_version,
                created_at=entry.created_at,
                images=entry.media,
            )
            for entry in approved
        ],
    )


class OwnerLocks:
    """Per-owner asyncio locks, dropped once no request holds a reference."""

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def get(self, owner_id: str) -> asyncio.Lock:
        lock = self._locks.get(owner_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[owner_id] = lock
        return lock


class JournalStore(ABC):
    """Owner-scoped persistence for journals, entries, media and shares.

    Mutations for a single owner are serialised in-process; different owners
    proceed in parallel.
    """

    approval_policy: ApprovalPolicy

    async def start(self) -> None:
        return None

    async def close(self) -> None:
        return None

    # -------------------------------------------------------------------------
    # Journals
    # -------------------------------------------------------------------------

    @abstractmethod
    async def ensure_owner(self, owner_id: str) -> None: ...

    @abstractmethod
    async def list_journals(self, owner_id: str) -> list[Journal]: ...

    @abstractmethod
    async def get_journal(self, owner_id: str, journal_id: str) -> Journal: ...

    @abstractmethod
    async def create_journal(
        self, owner_id: str, *, title: str, theme_family: str, page_size: str
    ) -> Journal: ...

    @abstractmethod
    async def update_journal(
        self,
        owner_id: str,
        journal_id: str,
        *,
        title: str | None = None,
        theme_family: str | None = None,
        page_size: str | None = None,
    ) -> Journal: ...

    @abstractmethod
    async def delete_journal(self, owner_id: str, journal_id: str) -> bool: ...

    # -------------------------------------------------------------------------
    # Entries
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_entries(self, owner_id: str, journal_id: str) -> list[Entry]: ...

    @abstractmethod
    async def get_entry(self, owner_id: str, entry_id: str) -> Entry: ...

    @abstractmethod
    async def create_entry(self, owner_id: str, journal_id: str) -> Entry: ...

    @abstractmethod
    async def update_entry_text(
        self,
        owner_id: str,
        entry_id: str,
        *,
        title_final: str | None = None,
        desc_final: str | None = None,
    ) -> Entry: ...

    @abstractmethod
    async def add_media(self, owner_id: str, entry_id: str, media: Media) -> Entry: ...

    @abstractmethod
    async def cache_preview(self, owner_id: str, entry_id: str, bundle: PreviewBundle) -> Entry: ...

    @abstractmethod
    async def approve_entry(
        self,
        owner_id: str,
        entry_id: str,
        *,
        template_id: str,
        title: str,
        description: str = "",
    ) -> Entry: ...

    @abstractmethod
    async def list_versions(self, owner_id: str, entry_id: str) -> list[EntryVersion]: ...

    async def book(self, owner_id: str, journal_id: str) -> BookView:
        journal = await self.get_journal(owner_id, journal_id)
        entries = await self.list_entries(owner_id, journal_id)
        return build_book(journal, entries)

    # -------------------------------------------------------------------------
    # Shares
    # -------------------------------------------------------------------------

    @abstractmethod
    async def create_share(self, owner_id: str, journal_id: str, mode: str) -> Share: ...

    @abstractmethod
    async def list_shares(self, owner_id: str, journal_id: str) -> list[Share]: ...

    @abstractmethod
    async def revoke_share(self, owner_id: str, share_id: str) -> Share: ...

    @abstractmethod
    async def create_invite(
        self, owner_id: str, share_id: str, email: str | None = None
    ) -> ShareInvite: ...

    @abstractmethod
    async def revoke_invite(self, owner_id: str, invite_id: str) -> ShareInvite: ...

    @abstractmethod
    async def resolve_public_share(self, slug: str) -> BookView: ...

    @abstractmethod
    async def resolve_invite(self, invite_slug: str) -> BookView: ...
