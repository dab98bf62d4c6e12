from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StringConstraints
from pydantic.alias_generators import to_camel

EntryStatus = Literal["draft", "approved"]
ShareMode = Literal["public", "invite"]

JournalTitle = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=80)]
JournalLabel = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=40)]
FinalTitle = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=120)]
FinalDescription = Annotated[str, StringConstraints(strip_whitespace=True, max_length=2000)]
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Bootstrap(CamelModel):
    status: str
    owner_id: str


class JournalCreate(CamelModel):
    title: JournalTitle
    theme_family: JournalLabel
    page_size: JournalLabel


class JournalUpdate(CamelModel):
    title: JournalTitle | None = None
    theme_family: JournalLabel | None = None
    page_size: JournalLabel | None = None


class Journal(CamelModel):
    id: str
    title: str
    theme_family: str
    page_size: str
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None


class JournalSummary(CamelModel):
    id: str
    title: str
    theme_family: str
    page_size: str


class Media(CamelModel):
    id: str
    original_url: str
    derived_url: str
    original_name: str | None = None
    created_at: datetime


class UploadedFile(BaseModel):
    filename: str
    content_type: str | None = None
    data: bytes


class MediaSuggestion(CamelModel):
    media_id: str
    before_url: str
    after_url: str
    suggested_edits: list[dict[str, Any]] = Field(default_factory=list)


class PageLayout(CamelModel):
    background: str
    frame: str
    collage: Literal["single", "grid", "stack"]
    notes_style: Literal["handwritten", "typewriter", "clean"]


class TextSuggestion(CamelModel):
    title: str
    description: str


class PageOption(CamelModel):
    id: str
    name: str
    style: str
    layout: PageLayout
    suggestion: TextSuggestion
    preview_image_url: str


class PreviewBundle(CamelModel):
    entry_id: str
    created_at: datetime
    suggested_title: str
    suggested_description: str
    media_suggestions: list[MediaSuggestion] = Field(default_factory=list)
    page_options: list[PageOption] = Field(default_factory=list)


class EntryCreate(CamelModel):
    journal_id: str = Field(min_length=1)


class EntryTextUpdate(CamelModel):
    title_final: FinalTitle | None = None
    desc_final: FinalDescription | None = None


class Entry(CamelModel):
    id: str
    journal_id: str
    status: EntryStatus = "draft"
    title_final: str | None = None
    desc_final: str | None = None
    approved_template_id: str | None = None
    current_version: int = 0
    approved_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    media: list[Media] = Field(default_factory=list)
    last_preview: PreviewBundle | None = None


class ApproveRequest(CamelModel):
    template_id: str = Field(min_length=1, max_length=40)
    title: FinalTitle
    description: FinalDescription = ""


class EntryVersion(CamelModel):
    entry_id: str
    version_num: int
    template_id: str
    title_final: str
    desc_final: str
    approved_at: datetime


class ShareCreate(CamelModel):
    journal_id: str = Field(min_length=1)
    mode: ShareMode


class InviteCreate(CamelModel):
    share_id: str = Field(min_length=1)
    email: str | None = Field(default=None, max_length=254, pattern=EMAIL_PATTERN)


class ShareInvite(CamelModel):
    id: str
    share_id: str
    invite_slug: str
    email: str | None = None
    created_at: datetime
    revoked_at: datetime | None = None


class Share(CamelModel):
    id: str
    journal_id: str
    mode: ShareMode
    slug: str
    enabled: bool = True
    created_at: datetime
    revoked_at: datetime | None = None
    invites: list[ShareInvite] = Field(default_factory=list)


class BookPage(CamelModel):
    entry_id: str
    title: str | None = None
    description: str | None = None
    template_id: str | None = None
    version_num: int = 0
    created_at: datetime
    images: list[Media] = Field(default_factory=list)


class BookView(CamelModel):
    journal: JournalSummary
    pages: list[BookPage]


class OwnerDocument(CamelModel):
    schema_version: int = 1
    owner_id: str
    created_at: datetime
    journals: list[Journal] = Field(default_factory=list)
    entries: list[Entry] = Field(default_factory=list)
    shares: list[Share] = Field(default_factory=list)
