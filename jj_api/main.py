import logging
import os
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from .database import shutdown_db, startup_db
from .errors import InvalidInputError, NotFoundError, StorageFailure, ValidationError
from .owner import get_owner_id
from .repositories import DocumentStore, JournalStore, RelationalStore
from .schemas import (
    ApproveRequest,
    Bootstrap,
    BookView,
    Entry,
    EntryCreate,
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
    UploadedFile,
)
from .services import JournalService
from .spreads import PhysicalSpreadPlan, SpreadRequest, suggest_spreads
from .storage import MEDIA_URL_PREFIX, STORAGE_DIR, MediaStorage

logger = logging.getLogger(__name__)

STORE_BACKEND = os.getenv("JJ_STORE_BACKEND", "documents").lower()
UPLOAD_MAX_FILES = int(os.getenv("JJ_UPLOAD_MAX_FILES", "20"))


async def build_store(backend: str = STORE_BACKEND) -> JournalStore:
    if backend == "database":
        return RelationalStore(await startup_db())
    if backend == "documents":
        return DocumentStore(STORAGE_DIR)
    raise RuntimeError(f"Unknown JJ_STORE_BACKEND: {backend}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    store = await build_store()
    await store.start()
    app.state.store = store
    app.state.media = MediaStorage(STORAGE_DIR)
    logger.info("Journal API started with %s store at %s", STORE_BACKEND, STORAGE_DIR)
    try:
        yield
    finally:
        await store.close()
        await shutdown_db()


app = FastAPI(title="Junk Journal API", lifespan=lifespan)

cors_origins = [origin.strip() for origin in os.getenv("CORS_ALLOW_ORIGINS", "").split(",") if origin.strip()]
if cors_origins:
    allow_all = "*" in cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else cors_origins,
        allow_credentials=not allow_all,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.mount(
    MEDIA_URL_PREFIX,
    StaticFiles(directory=MediaStorage(STORAGE_DIR).root, check_dir=False),
    name="media",
)


def get_store(request: Request) -> JournalStore:
    return request.app.state.store


def get_media_storage(request: Request) -> MediaStorage:
    return request.app.state.media


def get_journal_service(
    store: JournalStore = Depends(get_store),
    media: MediaStorage = Depends(get_media_storage),
) -> JournalService:
    return JournalService(store, media)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": exc.fields})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc) or "Not found"})


@app.exception_handler(InvalidInputError)
async def invalid_input_handler(request: Request, exc: InvalidInputError) -> JSONResponse:
    content: dict[str, object] = {"detail": str(exc)}
    if exc.filename:
        content["filename"] = exc.filename
    return JSONResponse(status_code=400, content=content)


@app.exception_handler(StorageFailure)
async def storage_failure_handler(request: Request, exc: StorageFailure) -> JSONResponse:
    logger.exception("Storage failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Storage failure"})


@app.get("/health")
@app.get("/api/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/api/bootstrap", response_model=Bootstrap)
async def bootstrap(
    owner_id: str = Depends(get_owner_id),
    store: JournalStore = Depends(get_store),
):
    await store.ensure_owner(owner_id)
    return Bootstrap(status="ok", owner_id=owner_id)


# -----------------------------------------------------------------------------
# Journals
# -----------------------------------------------------------------------------


@app.get("/api/journals", response_model=list[Journal])
async def list_journals(
    owner_id: str = Depends(get_owner_id),
    store: JournalStore = Depends(get_store),
):
    return await store.list_journals(owner_id)


@app.post("/api/journals", response_model=Journal, status_code=201)
async def create_journal(
    request: JournalCreate,
    owner_id: str = Depends(get_owner_id),
    store: JournalStore = Depends(get_store),
):
    return await store.create_journal(
        owner_id,
        title=request.title,
        theme_family=request.theme_family,
        page_size=request.page_size,
    )


@app.patch("/api/journals/{journal_id}", response_model=Journal)
async def update_journal(
    journal_id: str,
    request: JournalUpdate,
    owner_id: str = Depends(get_owner_id),
    store: JournalStore = Depends(get_store),
):
    return await store.update_journal(
        owner_id,
        journal_id,
        title=request.title,
        theme_family=request.theme_family,
        page_size=request.page_size,
    )


@app.delete("/api/journals/{journal_id}", status_code=204)
async def delete_journal(
    journal_id: str,
    owner_id: str = Depends(get_owner_id),
    store: JournalStore = Depends(get_store),
):
    deleted = await store.delete_journal(owner_id, journal_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Journal not found")


@app.get("/api/journals/{journal_id}/book", response_model=BookView)
async def journal_book(
    journal_id: str,
    owner_id: str = Depends(get_owner_id),
    store: JournalStore = Depends(get_store),
):
    return await store.book(owner_id, journal_id)


# -----------------------------------------------------------------------------
# Entries
# -----------------------------------------------------------------------------


@app.get("/api/entries/by-journal/{journal_id}", response_model=list[Entry])
async def list_entries(
    journal_id: str,
    owner_id: str = Depends(get_owner_id),
    store: JournalStore = Depends(get_store),
):
    return await store.list_entries(owner_id, journal_id)


@app.post("/api/entries", response_model=Entry, status_code=201)
async def create_entry(
    request: EntryCreate,
    owner_id: str = Depends(get_owner_id),
    store: JournalStore = Depends(get_store),
):
    return await store.create_entry(owner_id, request.journal_id)


@app.get("/api/entries/{entry_id}", response_model=Entry)
async def get_entry(
    entry_id: str,
    owner_id: str = Depends(get_owner_id),
    store: JournalStore = Depends(get_store),
):
    return await store.get_entry(owner_id, entry_id)


@app.patch("/api/entries/{entry_id}", response_model=Entry)
async def update_entry(
    entry_id: str,
    request: EntryTextUpdate,
    owner_id: str = Depends(get_owner_id),
    store: JournalStore = Depends(get_store),
):
    if not request.model_fields_set:
        raise HTTPException(status_code=400, detail="No fields to update")
    return await store.update_entry_text(
        owner_id,
        entry_id,
        title_final=request.title_final,
        desc_final=request.desc_final,
    )


@app.get("/api/entries/{entry_id}/versions", response_model=list[EntryVersion])
async def list_versions(
    entry_id: str,
    owner_id: str = Depends(get_owner_id),
    store: JournalStore = Depends(get_store),
):
    return await store.list_versions(owner_id, entry_id)


@app.post("/api/upload/{entry_id}", response_model=list[Media], status_code=201)
async def upload(
    entry_id: str,
    files: list[UploadFile] | None = File(default=None),
    owner_id: str = Depends(get_owner_id),
    service: JournalService = Depends(get_journal_service),
):
    if not files:
        raise HTTPException(status_code=400, detail="No files uploaded")
    if len(files) > UPLOAD_MAX_FILES:
        raise HTTPException(
            status_code=400, detail=f"At most {UPLOAD_MAX_FILES} files per upload"
        )
    uploads = [
        UploadedFile(
            filename=item.filename or "upload",
            content_type=item.content_type,
            data=await item.read(),
        )
        for item in files
    ]
    return await service.upload_media(owner_id, entry_id, uploads)


@app.get("/api/preview/{entry_id}", response_model=PreviewBundle)
async def preview(
    entry_id: str,
    owner_id: str = Depends(get_owner_id),
    service: JournalService = Depends(get_journal_service),
):
    return await service.preview(owner_id, entry_id)


@app.post("/api/approve/{entry_id}", response_model=Entry)
async def approve(
    entry_id: str,
    request: ApproveRequest,
    owner_id: str = Depends(get_owner_id),
    service: JournalService = Depends(get_journal_service),
):
    return await service.approve(
        owner_id,
        entry_id,
        template_id=request.template_id,
        title=request.title,
        description=request.description,
    )


# -----------------------------------------------------------------------------
# Sharing
# -----------------------------------------------------------------------------


@app.post("/api/share", response_model=Share, status_code=201)
async def create_share(
    request: ShareCreate,
    owner_id: str = Depends(get_owner_id),
    store: JournalStore = Depends(get_store),
):
    return await store.create_share(owner_id, request.journal_id, request.mode)


@app.get("/api/share/by-journal/{journal_id}", response_model=list[Share])
async def list_shares(
    journal_id: str,
    owner_id: str = Depends(get_owner_id),
    store: JournalStore = Depends(get_store),
):
    return await store.list_shares(owner_id, journal_id)


@app.delete("/api/share/{share_id}", response_model=Share)
async def revoke_share(
    share_id: str,
    owner_id: str = Depends(get_owner_id),
    store: JournalStore = Depends(get_store),
):
    return await store.revoke_share(owner_id, share_id)


@app.post("/api/share/invite", response_model=ShareInvite, status_code=201)
async def create_invite(
    request: InviteCreate,
    owner_id: str = Depends(get_owner_id),
    store: JournalStore = Depends(get_store),
):
    return await store.create_invite(owner_id, request.share_id, request.email)


@app.delete("/api/share/invite/{invite_id}", response_model=ShareInvite)
async def revoke_invite(
    invite_id: str,
    owner_id: str = Depends(get_owner_id),
    store: JournalStore = Depends(get_store),
):
    return await store.revoke_invite(owner_id, invite_id)


@app.get("/api/share/public/{slug}", response_model=BookView)
async def public_share(slug: str, store: JournalStore = Depends(get_store)):
    return await store.resolve_public_share(slug)


@app.get("/api/share/invite/{invite_slug}", response_model=BookView)
async def invite_share(invite_slug: str, store: JournalStore = Depends(get_store)):
    return await store.resolve_invite(invite_slug)


# -----------------------------------------------------------------------------
# Copilot
# -----------------------------------------------------------------------------


@app.post("/api/copilot/suggest", response_model=list[PhysicalSpreadPlan])
async def copilot_suggest(request: SpreadRequest):
    return suggest_spreads(request)
