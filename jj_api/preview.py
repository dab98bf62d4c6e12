from datetime import datetime, timezone
from urllib.parse import quote

from .schemas import Entry, Journal, MediaSuggestion, PageLayout, PageOption, PreviewBundle, TextSuggestion

EMPTY_TITLE = "New memory"
EMPTY_DESCRIPTION = "Upload photos to generate a junk journal page preview."
DEFAULT_DESCRIPTION = "A cozy memory captured in textures, color, and little details. (Edit anytime.)"

SUGGESTED_EDITS = [
    {"type": "enhance", "strength": "medium"},
    {"type": "mask_object", "mode": "medium"},
    {"type": "crop_rect", "x": 0.05, "y": 0.05, "w": 0.9, "h": 0.9},
]

# id -> (name, style, background, frame, notes style)
TEMPLATES: dict[str, tuple[str, str, str, str, str]] = {
    "optA": ("Layered Cozy", "scrapbook", "paper-warm", "tape-corners", "handwritten"),
    "optB": ("Minimal Tape Corners", "minimal", "paper-clean", "simple-shadow", "clean"),
    "optC": ("Vintage Ledger", "vintage", "paper-sepia", "vintage-border", "typewriter"),
}
TEMPLATE_IDS = tuple(TEMPLATES)


def suggest_text(entry: Entry, media_count: int) -> TextSuggestion:
    if media_count == 0:
        base_title, base_description = EMPTY_TITLE, EMPTY_DESCRIPTION
    elif media_count == 1:
        base_title, base_description = "A small moment", DEFAULT_DESCRIPTION
    else:
        base_title, base_description = f"A collage of {media_count} moments", DEFAULT_DESCRIPTION
    title = (entry.title_final or "").strip() or base_title
    description = (entry.desc_final or "").strip() or base_description
    return TextSuggestion(title=title, description=description)


def _collage(style: str, media_count: int) -> str:
    if style == "scrapbook":
        return "single" if media_count <= 1 else "grid"
    if style == "vintage":
        return "stack" if media_count <= 2 else "grid"
    return "single"


def placeholder_svg(label: str, theme_family: str, page_size: str) -> str:
    svg = (
        "<svg xmlns='http://www.w3.org/2000/svg' width='900' height='1200'>"
        "<defs><linearGradient id='g' x1='0' y1='0' x2='1' y2='1'>"
        "<stop offset='0%' stop-color='#f4efe6'/><stop offset='100%' stop-color='#e8ddc7'/>"
        "</linearGradient></defs>"
        "<rect width='100%' height='100%' fill='url(#g)'/>"
        f"<text x='64' y='120' font-size='48' fill='#2b2420' font-family='Georgia, serif'>{_escape(label)}</text>"
        f"<text x='64' y='178' font-size='22' fill='#2b2420' opacity='0.7' font-family='Georgia, serif'>"
        f"{_escape(theme_family)} &#8226; {_escape(page_size)}</text>"
        "<rect x='64' y='240' width='772' height='880' rx='28' fill='rgba(255,255,255,0.38)' "
        "stroke='rgba(43,36,32,0.20)'/>"
        "</svg>"
    )
    return "data:image/svg+xml;charset=utf-8," + quote(svg)


def _escape(value: str) -> str:
    return value.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;").replace("'", "&#39;")


def build_preview(entry: Entry, media_count: int, journal: Journal) -> PreviewBundle:
    suggestion = suggest_text(entry, media_count)
    options = []
    for template_id, (name, style, background, frame, notes_style) in TEMPLATES.items():
        options.append(
            PageOption(
                id=template_id,
                name=name,
                style=style,
                layout=PageLayout(
                    background=background,
                    frame=frame,
                    collage=_collage(style, media_count),
                    notes_style=notes_style,
                ),
                suggestion=suggestion,
                preview_image_url=placeholder_svg(name, journal.theme_family, journal.page_size),
            )
        )
    return PreviewBundle(
        entry_id=entry.id,
        created_at=datetime.now(timezone.utc),
        suggested_title=suggestion.title,
        suggested_description=suggestion.description,
        media_suggestions=[
            MediaSuggestion(
                media_id=media.id,
                before_url=media.original_url,
                after_url=media.derived_url,
                suggested_edits=[dict(edit) for edit in SUGGESTED_EDITS],
            )
            for media in entry.media[:media_count]
        ],
        page_options=options,
    )
