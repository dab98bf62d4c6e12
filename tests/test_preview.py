from datetime import datetime, timezone
from urllib.parse import unquote

import pytest

from jj_api.preview import TEMPLATE_IDS, build_preview, suggest_text
from jj_api.schemas import Entry, Journal, Media

NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def _journal() -> Journal:
    return Journal(
        id="j1", title="Trip", theme_family="travel", page_size="A5", created_at=NOW, updated_at=NOW
    )


def _entry(media_count: int = 0, **fields) -> Entry:
    media = [
        Media(
            id=f"m{i}",
            original_url=f"/media/o/e/{i}.png",
            derived_url=f"/media/o/e/_derived/{i}_enh.jpg",
            created_at=NOW,
        )
        for i in range(media_count)
    ]
    return Entry(id="e1", journal_id="j1", created_at=NOW, updated_at=NOW, media=media, **fields)


@pytest.mark.parametrize(
    "media_count, title",
    [(0, "New memory"), (1, "A small moment"), (2, "A collage of 2 moments"), (7, "A collage of 7 moments")],
)
def test_title_heuristic(media_count, title):
    assert suggest_text(_entry(media_count), media_count).title == title


def test_existing_final_text_wins():
    entry = _entry(3, title_final="Beach day", desc_final="Salt and wind.")

    suggestion = suggest_text(entry, 3)

    assert suggestion.title == "Beach day"
    assert suggestion.description == "Salt and wind."


def test_preview_has_three_fixed_options():
    bundle = build_preview(_entry(1), 1, _journal())

    assert [option.id for option in bundle.page_options] == list(TEMPLATE_IDS) == ["optA", "optB", "optC"]
    assert [option.name for option in bundle.page_options] == [
        "Layered Cozy",
        "Minimal Tape Corners",
        "Vintage Ledger",
    ]
    assert [option.style for option in bundle.page_options] == ["scrapbook", "minimal", "vintage"]
    assert all(option.suggestion.title == "A small moment" for option in bundle.page_options)


def test_collage_depends_on_media_count():
    single = build_preview(_entry(1), 1, _journal())
    many = build_preview(_entry(4), 4, _journal())

    assert [option.layout.collage for option in single.page_options] == ["single", "single", "stack"]
    assert [option.layout.collage for option in many.page_options] == ["grid", "single", "grid"]


def test_media_suggestions_pair_original_and_derived():
    bundle = build_preview(_entry(2), 2, _journal())

    assert [item.media_id for item in bundle.media_suggestions] == ["m0", "m1"]
    assert bundle.media_suggestions[0].before_url == "/media/o/e/0.png"
    assert bundle.media_suggestions[0].after_url == "/media/o/e/_derived/0_enh.jpg"
    assert [edit["type"] for edit in bundle.media_suggestions[0].suggested_edits] == [
        "enhance",
        "mask_object",
        "crop_rect",
    ]


def test_placeholder_names_theme_and_page_size():
    bundle = build_preview(_entry(0), 0, _journal())
    url = bundle.page_options[0].preview_image_url

    assert url.startswith("data:image/svg+xml")
    svg = unquote(url)
    assert "Layered Cozy" in svg
    assert "travel" in svg
    assert "A5" in svg


def test_preview_serialises_camel_case():
    payload = build_preview(_entry(1), 1, _journal()).model_dump(mode="json", by_alias=True)

    assert {"entryId", "createdAt", "suggestedTitle", "suggestedDescription", "mediaSuggestions", "pageOptions"} <= set(payload)
    assert "previewImageUrl" in payload["pageOptions"][0]
    assert "notesStyle" in payload["pageOptions"][0]["layout"]
