from typing import List, Optional

from pydantic import BaseModel, Field


class EpoxyStyle(BaseModel):
    id: str = Field(..., description="Stable style identifier")
    name: str
    prompt_description: str = Field(..., description="Floor description embedded in the edit prompt")
    css_background: str = Field(..., description="Swatch gradient for the style picker")


class EpoxyStyleListResponse(BaseModel):
    success: bool
    styles: List[EpoxyStyle] = []
    total_count: int = 0


EPOXY_STYLES: List[EpoxyStyle] = [
    EpoxyStyle(
        id="desert-mix",
        name="Desert Mix",
        prompt_description="a glossy epoxy garage floor with a dense flake texture in tan, brown, black, and white",
        css_background="conic-gradient(from 45deg, #C19A6B, #4E3629, #FFFFFF, #000000, #C19A6B)",
    ),
    EpoxyStyle(
        id="denim-mix",
        name="Denim Mix",
        prompt_description="a glossy epoxy garage floor with a dense flake texture in royal blue, grey, black, and white",
        css_background="conic-gradient(from 135deg, #2563EB, #9CA3AF, #FFFFFF, #000000, #2563EB)",
    ),
    EpoxyStyle(
        id="graphite-mix",
        name="Graphite Mix",
        prompt_description="a glossy epoxy garage floor with a dense flake texture in dark grey, medium grey, and black",
        css_background="conic-gradient(from 90deg, #374151, #6B7280, #1F2937, #374151)",
    ),
    EpoxyStyle(
        id="silver-mix",
        name="Silver Mix",
        prompt_description="a glossy epoxy garage floor with a dense flake texture in light grey, white, and black",
        css_background="conic-gradient(from 180deg, #E5E7EB, #FFFFFF, #000000, #9CA3AF, #E5E7EB)",
    ),
    EpoxyStyle(
        id="domino-mix",
        name="Domino Mix",
        prompt_description="a glossy epoxy garage floor with a dense flake texture in high-contrast black, white, and grey",
        css_background="conic-gradient(from 0deg, #000000, #FFFFFF, #4B5563, #000000)",
    ),
    EpoxyStyle(
        id="sandstone-mix",
        name="Sandstone Mix",
        prompt_description="a glossy epoxy garage floor with a dense flake texture in beige, cream, and light tan",
        css_background="conic-gradient(from 225deg, #D2B48C, #FEF3C7, #F3E5AB, #D2B48C)",
    ),
]


def get_style(style_id: str) -> Optional[EpoxyStyle]:
    """Look up a catalog style by id."""
    for style in EPOXY_STYLES:
        if style.id == style_id:
            return style
    return None
