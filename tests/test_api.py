import pytest

from jj_api.main import UPLOAD_MAX_FILES
from tests.utils import OWNER_ID, app_client, image_bytes, image_file


async def _create_journal(client, **fields):
    payload = {"title": "Trip", "themeFamily": "travel", "pageSize": "A5"}
    payload.update(fields)
    response = await client.post("/api/journals", json=payload)
    assert response.status_code == 201
    return response.json()


async def _create_entry(client, journal_id):
    response = await client.post("/api/entries", json={"journalId": journal_id})
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_journal_to_book_flow(document_store, media_storage):
    async with app_client(document_store, media_storage) as client:
        journal = await _create_journal(client)
        entry = await _create_entry(client, journal["id"])
        assert entry["status"] == "draft"
        assert entry["currentVersion"] == 0

        uploaded = await client.post(
            f"/api/upload/{entry['id']}",
            files=[image_file("one.png"), image_file("two.png", color=(20, 90, 160))],
        )
        assert uploaded.status_code == 201
        media = uploaded.json()
        assert [item["originalName"] for item in media] == ["two.png", "one.png"]
        assert all(item["derivedUrl"].endswith("_enh.jpg") for item in media)
        assert media[0]["originalUrl"].startswith(f"/media/{OWNER_ID}/{entry['id']}/")

        preview = await client.get(f"/api/preview/{entry['id']}")
        assert preview.status_code == 200
        bundle = preview.json()
        assert bundle["suggestedTitle"] == "A collage of 2 moments"
        assert [option["id"] for option in bundle["pageOptions"]] == ["optA", "optB", "optC"]
        assert len(bundle["mediaSuggestions"]) == 2

        cached = (await client.get(f"/api/entries/{entry['id']}")).json()
        assert cached["lastPreview"]["suggestedTitle"] == "A collage of 2 moments"

        approved = await client.post(
            f"/api/approve/{entry['id']}",
            json={"templateId": "optA", "title": "Day one", "description": "Sand everywhere."},
        )
        assert approved.status_code == 200
        assert approved.json()["status"] == "approved"
        assert approved.json()["approvedTemplateId"] == "optA"

        book = (await client.get(f"/api/journals/{journal['id']}/book")).json()
        assert book["journal"] == {
            "id": journal["id"],
            "title": "Trip",
            "themeFamily": "travel",
            "pageSize": "A5",
        }
        assert len(book["pages"]) == 1
        page = book["pages"][0]
        assert page["title"] == "Day one"
        assert page["templateId"] == "optA"
        assert page["versionNum"] == 1
        assert len(page["images"]) == 2

        versions = (await client.get(f"/api/entries/{entry['id']}/versions")).json()
        assert [version["versionNum"] for version in versions] == [1]


@pytest.mark.asyncio
async def test_uploaded_files_land_on_disk(document_store, media_storage):
    async with app_client(document_store, media_storage) as client:
        journal = await _create_journal(client)
        entry = await _create_entry(client, journal["id"])
        response = await client.post(f"/api/upload/{entry['id']}", files=[image_file("one.png")])

    media = response.json()[0]
    original = media_storage.root.parent / media["originalUrl"].lstrip("/")
    derived = media_storage.root.parent / media["derivedUrl"].lstrip("/")
    assert original.read_bytes() == image_bytes()
    assert derived.read_bytes()[:2] == b"\xff\xd8"
    assert derived.parent.name == "_derived"


@pytest.mark.asyncio
async def test_journal_routes(document_store, media_storage):
    async with app_client(document_store, media_storage) as client:
        first = await _create_journal(client, title="First")
        second = await _create_journal(client, title="Second")

        listed = (await client.get("/api/journals")).json()
        assert [journal["id"] for journal in listed] == [second["id"], first["id"]]

        patched = await client.patch(f"/api/journals/{first['id']}", json={"pageSize": "A6"})
        assert patched.status_code == 200
        assert patched.json()["pageSize"] == "A6"
        assert patched.json()["title"] == "First"

        deleted = await client.delete(f"/api/journals/{first['id']}")
        assert deleted.status_code == 204
        again = await client.delete(f"/api/journals/{first['id']}")
        assert again.status_code == 404

        assert (await client.get(f"/api/journals/{first['id']}/book")).status_code == 404
        assert [j["id"] for j in (await client.get("/api/journals")).json()] == [second["id"]]


@pytest.mark.asyncio
async def test_snake_case_input_is_accepted(document_store, media_storage):
    async with app_client(document_store, media_storage) as client:
        response = await client.post(
            "/api/journals", json={"title": "Trip", "theme_family": "travel", "page_size": "A5"}
        )

    assert response.status_code == 201
    assert response.json()["themeFamily"] == "travel"


@pytest.mark.asyncio
async def test_invalid_journal_payload(document_store, media_storage):
    async with app_client(document_store, media_storage) as client:
        response = await client.post(
            "/api/journals", json={"title": "", "themeFamily": "travel", "pageSize": "A5"}
        )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_missing_resources_are_404(document_store, media_storage):
    async with app_client(document_store, media_storage) as client:
        assert (await client.get("/api/entries/missing")).status_code == 404
        assert (await client.post("/api/entries", json={"journalId": "missing"})).status_code == 404
        assert (await client.get("/api/preview/missing")).status_code == 404
        assert (await client.patch("/api/journals/missing", json={"title": "x"})).status_code == 404
        response = await client.post("/api/upload/missing", files=[image_file()])
        assert response.status_code == 404
        assert not media_storage.root.exists()


@pytest.mark.asyncio
async def test_entry_text_patch(document_store, media_storage):
    async with app_client(document_store, media_storage) as client:
        journal = await _create_journal(client)
        entry = await _create_entry(client, journal["id"])

        patched = await client.patch(f"/api/entries/{entry['id']}", json={"titleFinal": "Beach"})
        empty = await client.patch(f"/api/entries/{entry['id']}", json={})
        preview = (await client.get(f"/api/preview/{entry['id']}")).json()

    assert patched.status_code == 200
    assert patched.json()["titleFinal"] == "Beach"
    assert empty.status_code == 400
    assert preview["suggestedTitle"] == "Beach"


@pytest.mark.asyncio
async def test_empty_entry_preview(document_store, media_storage):
    async with app_client(document_store, media_storage) as client:
        journal = await _create_journal(client)
        entry = await _create_entry(client, journal["id"])
        bundle = (await client.get(f"/api/preview/{entry['id']}")).json()

    assert bundle["suggestedTitle"] == "New memory"
    assert bundle["mediaSuggestions"] == []
    assert len(bundle["pageOptions"]) == 3


@pytest.mark.asyncio
async def test_upload_requires_files(document_store, media_storage):
    async with app_client(document_store, media_storage) as client:
        journal = await _create_journal(client)
        entry = await _create_entry(client, journal["id"])
        response = await client.post(f"/api/upload/{entry['id']}", data={"note": "nothing"})

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_upload_rejects_too_many_files(document_store, media_storage):
    files = [image_file(f"{i}.png", size=(8, 8)) for i in range(UPLOAD_MAX_FILES + 1)]
    async with app_client(document_store, media_storage) as client:
        journal = await _create_journal(client)
        entry = await _create_entry(client, journal["id"])
        response = await client.post(f"/api/upload/{entry['id']}", files=files)
        stored = (await client.get(f"/api/entries/{entry['id']}")).json()

    assert response.status_code == 400
    assert stored["media"] == []


@pytest.mark.asyncio
async def test_upload_rejects_non_images(document_store, media_storage):
    async with app_client(document_store, media_storage) as client:
        journal = await _create_journal(client)
        entry = await _create_entry(client, journal["id"])
        response = await client.post(
            f"/api/upload/{entry['id']}", files=[("files", ("notes.txt", b"hello", "text/plain"))]
        )

    assert response.status_code == 400
    assert response.json()["filename"] == "notes.txt"


@pytest.mark.asyncio
async def test_failed_file_stops_batch_and_keeps_earlier_files(document_store, media_storage):
    files = [
        image_file("good.png"),
        ("files", ("broken.png", b"not really a png", "image/png")),
        image_file("never.png"),
    ]
    async with app_client(document_store, media_storage) as client:
        journal = await _create_journal(client)
        entry = await _create_entry(client, journal["id"])
        response = await client.post(f"/api/upload/{entry['id']}", files=files)
        stored = (await client.get(f"/api/entries/{entry['id']}")).json()

    assert response.status_code == 400
    assert response.json()["filename"] == "broken.png"
    assert [item["originalName"] for item in stored["media"]] == ["good.png"]
    originals = [path for path in media_storage.entry_dir(OWNER_ID, entry["id"]).iterdir() if path.is_file()]
    assert len(originals) == 1


@pytest.mark.asyncio
async def test_approve_validation(document_store, media_storage):
    async with app_client(document_store, media_storage) as client:
        journal = await _create_journal(client)
        entry = await _create_entry(client, journal["id"])

        unknown = await client.post(
            f"/api/approve/{entry['id']}", json={"templateId": "optQ", "title": "Fine"}
        )
        empty_title = await client.post(
            f"/api/approve/{entry['id']}", json={"templateId": "optA", "title": ""}
        )
        stored = (await client.get(f"/api/entries/{entry['id']}")).json()

    assert unknown.status_code == 422
    assert unknown.json()["detail"][0]["loc"] == ["templateId"]
    assert empty_title.status_code == 422
    assert stored["status"] == "draft"


@pytest.mark.asyncio
async def test_version_history_over_http(relational_store, media_storage):
    async with app_client(relational_store, media_storage) as client:
        journal = await _create_journal(client)
        entry = await _create_entry(client, journal["id"])
        await client.post(f"/api/approve/{entry['id']}", json={"templateId": "optA", "title": "One"})
        second = await client.post(f"/api/approve/{entry['id']}", json={"templateId": "optC", "title": "Two"})
        versions = (await client.get(f"/api/entries/{entry['id']}/versions")).json()

    assert second.json()["currentVersion"] == 2
    assert [(v["versionNum"], v["templateId"]) for v in versions] == [(2, "optC"), (1, "optA")]


@pytest.mark.asyncio
async def test_copilot_suggest(document_store, media_storage):
    async with app_client(document_store, media_storage) as client:
        response = await client.post(
            "/api/copilot/suggest",
            json={"spreadMode": "two_page", "pageFormat": "A5", "gutterSide": "right", "title": "Lake"},
        )
        invalid = await client.post("/api/copilot/suggest", json={"spreadMode": "triple"})

    assert response.status_code == 200
    plans = response.json()
    assert len(plans) == 1
    assert plans[0]["conceptTitle"] == "Essence: Lake"
    assert plans[0]["spreadMode"] == "two_page"
    assert invalid.status_code == 422
