"""Deterministic physical-spread plans for paper junk journaling."""

from __future__ import annotations

from typing import Literal

from pydantic import Field, model_validator

from .schemas import CamelModel

SpreadMode = Literal["single", "two_page"]
PageFormat = Literal["A5", "A6", "TN", "Letter"]
PageSide = Literal["single", "left", "right"]
Placement = Literal[
    "top-left",
    "top",
    "top-right",
    "center-left",
    "center",
    "center-right",
    "bottom-left",
    "bottom",
    "bottom-right",
]
ZoneId = Literal["anchor", "clusterA", "clusterB", "journalBlock", "captionStrip", "pocket"]
LayerAction = Literal["place", "tear", "tape", "glue", "label", "write", "pocket_build"]

DEFAULT_CONCEPT_TITLE = "Found Things, Soft Day"


class SpreadRequest(CamelModel):
    spread_mode: SpreadMode
    page_format: PageFormat
    gutter_side: Literal["left", "right"]
    title: str | None = Field(default=None, max_length=120)


class Zone(CamelModel):
    zone_id: ZoneId
    page: PageSide
    placement: Placement
    description: str = Field(min_length=1)


class SpreadLayout(CamelModel):
    gutter_side: Literal["left", "right"] | None = None
    margin_mm: float = Field(ge=0, le=25)
    gutter_mm: float = Field(ge=0, le=25)
    zones: list[Zone] = Field(min_length=3)


class LayerStep(CamelModel):
    step: int = Field(ge=1)
    page: PageSide
    action: LayerAction
    target: str = Field(min_length=1)
    method: str = Field(min_length=1)
    rationale: str = Field(min_length=1)


class TapeUse(CamelModel):
    use_for: str = Field(min_length=1)
    technique: str = Field(min_length=1)
    notes: str = Field(min_length=1)


class TapePlan(CamelModel):
    transparent_tape: list[TapeUse] = Field(min_length=1)
    washi_tape: list[TapeUse] = Field(min_length=1)


class CaptionSet(CamelModel):
    for_: str = Field(alias="for", min_length=1)
    options: list[str] = Field(min_length=6, max_length=6)


class WritingGuide(CamelModel):
    tone_guidance: str = Field(min_length=1)
    prompts: list[str] = Field(min_length=3, max_length=3)
    draft_paragraph: str = Field(min_length=80, max_length=900)
    micro_captions: list[str] = Field(min_length=6)


class PhysicalSpreadPlan(CamelModel):
    spread_mode: SpreadMode
    page_format: PageFormat
    concept_title: str = Field(min_length=1)
    layout: SpreadLayout
    layer_recipe: list[LayerStep] = Field(min_length=8, max_length=14)
    tape_plan: TapePlan
    materials: list[str] = Field(min_length=6)
    captions: list[CaptionSet] = Field(min_length=1)
    writing: WritingGuide
    safety_and_care: list[str] = Field(min_length=3)
    tags: list[str] = Field(min_length=2)

    @model_validator(mode="after")
    def _steps_in_order(self) -> "PhysicalSpreadPlan":
        numbers = [item.step for item in self.layer_recipe]
        if numbers != list(range(1, len(numbers) + 1)):
            raise ValueError("layer steps must be numbered from 1 without gaps")
        return self


SINGLE_ZONES = [
    ("anchor", "center", "Main anchor centered; keep gutter clear."),
    ("clusterA", "top-left", "Delicate cluster: leaves or fragile bits, frame-taped with clear tape."),
    ("clusterB", "bottom-right", "Heavier cluster: coins or tokens; strap or pocket if bulky."),
    ("journalBlock", "bottom", "Handwriting area with breathing room."),
    ("captionStrip", "top", "Date and tiny labels."),
]

TWO_PAGE_ZONES = [
    ("anchor", "left", "center", "Left page collage base; keep center gutter clear."),
    ("clusterA", "left", "top-left", "Delicate cluster on the outer edge, frame-taped."),
    ("pocket", "left", "bottom-left", "Pocket for bulky items; avoid the center gutter."),
    ("journalBlock", "right", "center", "Right page is writing-heavy, clean space for handwriting."),
    ("captionStrip", "right", "top", "Date and tiny labels on the right page header."),
]

LAYER_RECIPE = [
    ("tear", "background strip", "Tear a thin kraft or tissue strip behind the anchor edge.", "Softens edges and adds texture."),
    ("place", "scrap #1 (anchor)", "Center it; respect margin and gutter.", "Sets the visual weight."),
    ("tape", "scrap #1 edges", "Clear hinge tape: 2-3 short strips on corners and edges.", "Secure without hiding."),
    ("place", "scrap #2 (delicate)", "Angle top-left; float over the anchor slightly.", "Adds motion; feels found."),
    ("tape", "scrap #2 (delicate)", "Frame tape the perimeter with thin clear strips; avoid the center.", "Prevents curling and preserves texture."),
    ("place", "scrap #3 (paper or receipt)", "Tuck a corner under the anchor; peek into the journal area.", "Adds paper-trail authenticity."),
    ("tape", "scrap #3 corner", "One washi tab and one clear hinge.", "Charm and stability."),
    ("pocket_build", "optional pocket (bulky)", "Fold a scrap paper pocket; glue seams; reinforce with clear tape.", "Stops page bulge from fighting the binding."),
    ("label", "caption strip", "Add 2-3 micro labels (date and two words).", "Breadcrumbs make it curated."),
    ("write", "journal block", "Write 6-10 short lines; leave whitespace.", "Collage and reflection, not a wall of text."),
]

TRANSPARENT_TAPE = [
    ("leaf or delicate edges", "frame tape", "Perimeter only; do not seal moisture inside."),
    ("anchor corners", "hinge tape", "Short hinges reduce glare and keep it tidy."),
    ("bulky item stabilization", "strap tape or pocket", "Strap if removable; pocket if heavy."),
]
CROSS_PAGE_TAPE = (
    "cross-page continuity",
    "floating edge tabs",
    "Do not bridge the gutter with bulky tape; keep it light.",
)
WASHI_TAPE = [
    ("receipt tab", "corner tab", "One tab per cluster is enough; avoid overpowering."),
    ("date header", "mini banner", "A thin banner unifies without clutter."),
]

MATERIALS = [
    "transparent tape (clear)",
    "washi tape (1-2 patterns)",
    "glue stick (optional for flat paper)",
    "glue dots (optional for chunky items)",
    "fine-liner pen",
    "label stickers or scrap paper for captions",
]

CAPTION_OPTIONS = ["tiny proof", "kept anyway", "soft day", "found + saved", "small relics", "quiet details"]

TONE_GUIDANCE = "Warm, sensory, imperfect. Pin down texture, not a report."
PROMPTS = [
    "What did you notice that most people miss?",
    "What did you keep, and why?",
    "What felt small but meaningful today?",
]
DRAFT_PARAGRAPH = (
    "Today felt like a pocketful of small proofs: paper trails, tiny textures, a few "
    "seconds I did not want to lose. I am not trying to tell the whole story, just "
    "enough to return to the feeling later. The scraps are not perfect, but they are "
    "honest. They say: I was here. I noticed. And that was enough."
)
MICRO_CAPTIONS = ["found", "kept", "soft", "tiny proof", "still here", "details"]

SAFETY_AND_CARE = [
    "Delicate items (leaves): tape the perimeter to reduce curling; avoid trapping moisture.",
    "Bulky items (coins, tokens): use a pocket or strap to reduce binding stress and page bulge.",
    "Write after taping so ink does not smear on glossy tape or drag tape edges.",
]
TAGS = ["junk-journal", "transparent-tape", "found-objects"]


def concept_title(title: str | None) -> str:
    cleaned = (title or "").strip()
    return f"Essence: {cleaned}" if cleaned else DEFAULT_CONCEPT_TITLE


def _tape(rows) -> list[TapeUse]:
    return [TapeUse(use_for=use_for, technique=technique, notes=notes) for use_for, technique, notes in rows]


def _layout(request: SpreadRequest) -> SpreadLayout:
    if request.spread_mode == "two_page":
        return SpreadLayout(
            margin_mm=8,
            gutter_mm=12,
            zones=[
                Zone(zone_id=zone_id, page=page, placement=placement, description=description)
                for zone_id, page, placement, description in TWO_PAGE_ZONES
            ],
        )
    return SpreadLayout(
        gutter_side=request.gutter_side,
        margin_mm=8,
        gutter_mm=8,
        zones=[
            Zone(zone_id=zone_id, page="single", placement=placement, description=description)
            for zone_id, placement, description in SINGLE_ZONES
        ],
    )


def _step_page(mode: SpreadMode, action: str) -> PageSide:
    if mode == "single":
        return "single"
    return "right" if action == "write" else "left"


def build_plan(request: SpreadRequest) -> PhysicalSpreadPlan:
    """Build the plan for one spread.

    Two-page spreads keep the collage on the left page, move writing to the
    right page and add a light cross-page tape use.
    """
    mode = request.spread_mode
    transparent = list(TRANSPARENT_TAPE)
    if mode == "two_page":
        transparent.append(CROSS_PAGE_TAPE)

    return PhysicalSpreadPlan(
        spread_mode=mode,
        page_format=request.page_format,
        concept_title=concept_title(request.title),
        layout=_layout(request),
        layer_recipe=[
            LayerStep(
                step=index,
                page=_step_page(mode, action),
                action=action,
                target=target,
                method=method,
                rationale=rationale,
            )
            for index, (action, target, method, rationale) in enumerate(LAYER_RECIPE, start=1)
        ],
        tape_plan=TapePlan(transparent_tape=_tape(transparent), washi_tape=_tape(WASHI_TAPE)),
        materials=list(MATERIALS),
        captions=[CaptionSet(for_="scrap cluster", options=list(CAPTION_OPTIONS))],
        writing=WritingGuide(
            tone_guidance=TONE_GUIDANCE,
            prompts=list(PROMPTS),
            draft_paragraph=DRAFT_PARAGRAPH,
            micro_captions=list(MICRO_CAPTIONS),
        ),
        safety_and_care=list(SAFETY_AND_CARE),
        tags=list(TAGS),
    )


def suggest_spreads(request: SpreadRequest) -> list[PhysicalSpreadPlan]:
    return [build_plan(request)]
