import asyncio
import json
from datetime import datetime, timezone

import pytest

from jj_api.errors import NotFoundError, ValidationError
from jj_api.repositories import ApprovalPolicy
from jj_api.schemas import Media

OWNER = "owner_aaaaaaaaaaaaaaaa"
OTHER = "owner_bbbbbbbbbbbbbbbb"


async def _journal(store, title="Trip"):
    return await store.create_journal(OWNER, title=title, theme_family="travel", page_size="A5")


def _media(index: int) -> Media:
    return Media(
        id=f"media-{index}",
        original_url=f"/media/{OWNER}/e/{index}.png",
        derived_url=f"/media/{OWNER}/e/_derived/{index}_enh.jpg",
        original_name=f"{index}.png",
        created_at=datetime(2026, 1, 1, 12, index, tzinfo=timezone.utc),
    )


@pytest.mark.asyncio
async def test_journals_listed_newest_first(document_store):
    first = await _journal(document_store, "First")
    second = await _journal(document_store, "Second")

    journals = await document_store.list_journals(OWNER)

    assert [journal.id for journal in journals] == [second.id, first.id]
    assert document_store.approval_policy is ApprovalPolicy.OVERWRITE


@pytest.mark.asyncio
async def test_owner_document_is_camel_case_json(document_store, tmp_path):
    journal = await _journal(document_store)

    raw = json.loads((tmp_path / "store" / "owners" / f"{OWNER}.json").read_text())

    assert raw["ownerId"] == OWNER
    assert raw["schemaVersion"] == 1
    assert raw["journals"][0]["themeFamily"] == "travel"
    assert raw["journals"][0]["id"] == journal.id


@pytest.mark.asyncio
async def test_create_journal_validates_fields(document_store):
    with pytest.raises(ValidationError) as exc_info:
        await document_store.create_journal(OWNER, title="   ", theme_family="travel", page_size="A5")
    assert exc_info.value.fields[0]["loc"] == ["title"]

    with pytest.raises(ValidationError):
        await document_store.create_journal(OWNER, title="x" * 81, theme_family="travel", page_size="A5")

    assert await document_store.list_journals(OWNER) == []


@pytest.mark.asyncio
async def test_update_journal_keeps_unset_fields(document_store):
    journal = await _journal(document_store)

    updated = await document_store.update_journal(OWNER, journal.id, title="Road trip")

    assert updated.title == "Road trip"
    assert updated.theme_family == "travel"
    assert updated.updated_at >= journal.updated_at


@pytest.mark.asyncio
async def test_soft_delete_hides_journal(document_store):
    journal = await _journal(document_store)
    entry = await document_store.create_entry(OWNER, journal.id)

    assert await document_store.delete_journal(OWNER, journal.id) is True
    assert await document_store.delete_journal(OWNER, journal.id) is False
    assert await document_store.list_journals(OWNER) == []
    with pytest.raises(NotFoundError):
        await document_store.get_journal(OWNER, journal.id)
    with pytest.raises(NotFoundError):
        await document_store.book(OWNER, journal.id)
    with pytest.raises(NotFoundError):
        await document_store.create_entry(OWNER, journal.id)
    # Entries are kept on soft delete.
    assert (await document_store.get_entry(OWNER, entry.id)).id == entry.id
    assert [item.id for item in await document_store.list_entries(OWNER, journal.id)] == [entry.id]


@pytest.mark.asyncio
async def test_delete_unknown_journal_leaves_document_unchanged(document_store, tmp_path):
    await _journal(document_store)
    path = tmp_path / "store" / "owners" / f"{OWNER}.json"
    before = path.read_bytes()

    assert await document_store.delete_journal(OWNER, "missing") is False
    assert path.read_bytes() == before


@pytest.mark.asyncio
async def test_create_entry_for_missing_journal_writes_nothing(document_store, tmp_path):
    await _journal(document_store)
    path = tmp_path / "store" / "owners" / f"{OWNER}.json"
    before = path.read_bytes()

    with pytest.raises(NotFoundError):
        await document_store.create_entry(OWNER, "missing")

    assert path.read_bytes() == before


@pytest.mark.asyncio
async def test_failed_mutations_do_not_create_owner_document(document_store, tmp_path):
    path = tmp_path / "store" / "owners" / f"{OTHER}.json"

    with pytest.raises(NotFoundError):
        await document_store.create_entry(OTHER, "missing")
    with pytest.raises(NotFoundError):
        await document_store.update_journal(OTHER, "missing", title="Nope")
    assert await document_store.delete_journal(OTHER, "missing") is False

    assert not path.exists()


@pytest.mark.asyncio
async def test_new_entry_is_draft(document_store):
    journal = await _journal(document_store)

    entry = await document_store.create_entry(OWNER, journal.id)

    assert entry.status == "draft"
    assert entry.current_version == 0
    assert entry.media == []
    assert entry.title_final is None


@pytest.mark.asyncio
async def test_media_added_most_recent_first(document_store):
    journal = await _journal(document_store)
    entry = await document_store.create_entry(OWNER, journal.id)

    await document_store.add_media(OWNER, entry.id, _media(1))
    updated = await document_store.add_media(OWNER, entry.id, _media(2))

    assert [item.id for item in updated.media] == ["media-2", "media-1"]


@pytest.mark.asyncio
async def test_update_entry_text(document_store):
    journal = await _journal(document_store)
    entry = await document_store.create_entry(OWNER, journal.id)

    updated = await document_store.update_entry_text(OWNER, entry.id, title_final="Beach day")

    assert updated.title_final == "Beach day"
    assert updated.desc_final is None
    with pytest.raises(ValidationError):
        await document_store.update_entry_text(OWNER, entry.id, title_final="x" * 121)


@pytest.mark.asyncio
async def test_approve_overwrites_previous_approval(document_store):
    journal = await _journal(document_store)
    entry = await document_store.create_entry(OWNER, journal.id)

    first = await document_store.approve_entry(
        OWNER, entry.id, template_id="optA", title="Day one", description="Sand"
    )
    second = await document_store.approve_entry(OWNER, entry.id, template_id="optC", title="Day one, again")

    assert first.status == "approved"
    assert first.current_version == 1
    assert second.current_version == 1
    assert second.approved_template_id == "optC"
    assert second.title_final == "Day one, again"
    assert second.desc_final == ""
    versions = await document_store.list_versions(OWNER, entry.id)
    assert [(v.version_num, v.template_id) for v in versions] == [(1, "optC")]


@pytest.mark.asyncio
async def test_list_versions_empty_for_draft(document_store):
    journal = await _journal(document_store)
    entry = await document_store.create_entry(OWNER, journal.id)

    assert await document_store.list_versions(OWNER, entry.id) == []


@pytest.mark.asyncio
async def test_approve_rejects_unknown_template_and_bad_title(document_store):
    journal = await _journal(document_store)
    entry = await document_store.create_entry(OWNER, journal.id)

    with pytest.raises(ValidationError) as exc_info:
        await document_store.approve_entry(OWNER, entry.id, template_id="optZ", title="Fine")
    assert exc_info.value.fields[0]["loc"] == ["templateId"]

    with pytest.raises(ValidationError):
        await document_store.approve_entry(OWNER, entry.id, template_id="optA", title="")
    with pytest.raises(ValidationError):
        await document_store.approve_entry(
            OWNER, entry.id, template_id="optA", title="Fine", description="x" * 2001
        )

    assert (await document_store.get_entry(OWNER, entry.id)).status == "draft"


@pytest.mark.asyncio
async def test_book_lists_approved_entries_oldest_first(document_store):
    journal = await _journal(document_store)
    first = await document_store.create_entry(OWNER, journal.id)
    draft = await document_store.create_entry(OWNER, journal.id)
    third = await document_store.create_entry(OWNER, journal.id)
    await document_store.approve_entry(OWNER, third.id, template_id="optB", title="Third")
    await document_store.approve_entry(OWNER, first.id, template_id="optA", title="First")

    book = await document_store.book(OWNER, journal.id)

    assert book.journal.title == "Trip"
    assert [page.entry_id for page in book.pages] == [first.id, third.id]
    assert draft.id not in {page.entry_id for page in book.pages}
    assert book.pages[0].template_id == "optA"


@pytest.mark.asyncio
async def test_owners_are_isolated(document_store):
    journal = await _journal(document_store)
    entry = await document_store.create_entry(OWNER, journal.id)

    assert await document_store.list_journals(OTHER) == []
    with pytest.raises(NotFoundError):
        await document_store.get_journal(OTHER, journal.id)
    with pytest.raises(NotFoundError):
        await document_store.get_entry(OTHER, entry.id)
    with pytest.raises(NotFoundError):
        await document_store.create_entry(OTHER, journal.id)


@pytest.mark.asyncio
async def test_concurrent_mutations_for_one_owner_are_not_lost(document_store):
    await asyncio.gather(*(_journal(document_store, f"Journal {i}") for i in range(20)))

    journals = await document_store.list_journals(OWNER)

    assert len(journals) == 20
    assert {journal.title for journal in journals} == {f"Journal {i}" for i in range(20)}


@pytest.mark.asyncio
async def test_shares_resolve_only_approved_entries(document_store):
    journal = await _journal(document_store)
    approved = await document_store.create_entry(OWNER, journal.id)
    await document_store.create_entry(OWNER, journal.id)
    await document_store.approve_entry(OWNER, approved.id, template_id="optA", title="Shown")

    share = await document_store.create_share(OWNER, journal.id, "public")
    book = await document_store.resolve_public_share(share.slug)

    assert [page.entry_id for page in book.pages] == [approved.id]
    assert (await document_store.list_shares(OWNER, journal.id))[0].slug == share.slug


@pytest.mark.asyncio
async def test_revoked_share_and_invites_stop_resolving(document_store):
    journal = await _journal(document_store)
    public = await document_store.create_share(OWNER, journal.id, "public")
    invite_share = await document_store.create_share(OWNER, journal.id, "invite")
    invite = await document_store.create_invite(OWNER, invite_share.id, "friend@example.com")

    with pytest.raises(NotFoundError):
        await document_store.resolve_public_share(invite_share.slug)
    assert (await document_store.resolve_invite(invite.invite_slug)).journal.id == journal.id

    await document_store.revoke_invite(OWNER, invite.id)
    with pytest.raises(NotFoundError):
        await document_store.resolve_invite(invite.invite_slug)

    revoked = await document_store.revoke_share(OWNER, public.id)
    assert revoked.enabled is False
    assert revoked.revoked_at is not None
    with pytest.raises(NotFoundError):
        await document_store.resolve_public_share(public.slug)
    with pytest.raises(NotFoundError):
        await document_store.create_invite(OWNER, public.id)


@pytest.mark.asyncio
async def test_share_of_deleted_journal_does_not_resolve(document_store):
    journal = await _journal(document_store)
    share = await document_store.create_share(OWNER, journal.id, "public")
    await document_store.delete_journal(OWNER, journal.id)

    with pytest.raises(NotFoundError):
        await document_store.resolve_public_share(share.slug)
    with pytest.raises(NotFoundError):
        await document_store.create_share(OWNER, journal.id, "public")


@pytest.mark.asyncio
@pytest.mark.parametrize("slug", ["unknownslug12345", "../../owners/x", "short"])
async def test_unknown_or_malformed_slug_is_not_found(document_store, slug):
    with pytest.raises(NotFoundError):
        await document_store.resolve_public_share(slug)
    with pytest.raises(NotFoundError):
        await document_store.resolve_invite(slug)


@pytest.mark.asyncio
async def test_invite_email_is_validated(document_store):
    journal = await _journal(document_store)
    share = await document_store.create_share(OWNER, journal.id, "invite")

    with pytest.raises(ValidationError):
        await document_store.create_invite(OWNER, share.id, "not-an-email")
