# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

"""
Overlay composition for share collages.

The composer turns planned rectangles plus branding and stats into an ordered
list of layer descriptors (later entries render on top). Descriptors are plain
data; converting them to a render service's transformation syntax is the job
of the render adapter.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence
from urllib.parse import quote

from share_pipeline.formats import TargetFormat
from share_pipeline.layout import LayoutRectangle
from shared.types import ShareStats

TITLE_MAX_CHARS = 15
MAX_DESTINATIONS = 5
ELLIPSIS = "..."
DESTINATION_SEPARATOR = " • "
DEFAULT_TITLE = "Activity"

FOOTER_TEXT_X = 30


class LayerKind(Enum):
    IMAGE = "image"
    SHAPE = "shape"
    TEXT = "text"


class LayerRole(Enum):
    PHOTO = ("photo", LayerKind.IMAGE)
    LOGO = ("logo", LayerKind.IMAGE)
    FOOTER_BAND = ("footer_band", LayerKind.SHAPE)
    STATS = ("stats", LayerKind.TEXT)
    DESTINATIONS = ("destinations", LayerKind.TEXT)
    CTA = ("cta", LayerKind.TEXT)

    def __init__(self, label: str, kind: LayerKind):
        self.label = label
        self.kind = kind


class Anchor(Enum):
    NORTH_WEST = "north_west"
    NORTH_EAST = "north_east"
    SOUTH_WEST = "south_west"
    SOUTH_EAST = "south_east"


@dataclass(frozen=True)
class ShareStyle:
    logo_ref: str = "ma-bucket-liste/logo_xdetr5"
    logo_width: int = 120
    logo_margin: int = 20
    logo_opacity: int = 85
    footer_fill: str = "rgb:000000"
    footer_opacity: int = 70
    text_color: str = "rgb:ffffff"
    font_family: str = "Montserrat"
    cta_text: str = "mabucketliste.fr"


DEFAULT_STYLE = ShareStyle()


@dataclass(frozen=True)
class TextSpec:
    text: str  # percent-escaped
    font_family: str
    font_size: int
    font_weight: Optional[str] = None


@dataclass(frozen=True)
class OverlayDescriptor:
    role: LayerRole
    anchor: Anchor
    x: int = 0
    y: int = 0
    width: Optional[int] = None
    height: Optional[int] = None
    asset_ref: Optional[str] = None
    text: Optional[TextSpec] = None
    crop: Optional[str] = None
    crop_gravity: Optional[str] = None
    opacity: Optional[int] = None
    color: Optional[str] = None

    @property
    def kind(self) -> LayerKind:
        return self.role.kind


def escape_text(text: str) -> str:
    """Percent-escape text for a transformation pipeline (UTF-8, lossless)."""
    return quote(text, safe="")


def truncate_title(title: Optional[str], limit: int = TITLE_MAX_CHARS) -> str:
    title = (title or "").strip() or DEFAULT_TITLE
    if len(title) > limit:
        return title[:limit] + ELLIPSIS
    return title


def format_stats_line(stats: ShareStats) -> str:
    return (
        f"✅ {stats.completed}/{stats.total} completed ({stats.completion_rate}%)"
    )


def format_destinations_line(names: Sequence[str]) -> str:
    shown = [truncate_title(name) for name in names[:MAX_DESTINATIONS]]
    suffix = ELLIPSIS if len(names) > MAX_DESTINATIONS else ""
    return f"🌍 {DESTINATION_SEPARATOR.join(shown)}{suffix}"


class OverlayBuilder:
    """Accumulates layer descriptors in stacking order."""

    def __init__(self, fmt: TargetFormat, style: ShareStyle = DEFAULT_STYLE):
        self.fmt = fmt
        self.style = style
        self._layers: List[OverlayDescriptor] = []

    def add_photo(self, image_ref: str, rect: LayoutRectangle) -> "OverlayBuilder":
        self._layers.append(
            OverlayDescriptor(
                role=LayerRole.PHOTO,
                anchor=Anchor.NORTH_WEST,
                x=rect.x,
                y=rect.y,
                width=rect.width,
                height=rect.height,
                asset_ref=image_ref,
                crop="fill",
                crop_gravity="center",
            )
        )
        return self

    def add_logo(self) -> "OverlayBuilder":
        self._layers.append(
            OverlayDescriptor(
                role=LayerRole.LOGO,
                anchor=Anchor.NORTH_EAST,
                x=self.style.logo_margin,
                y=self.style.logo_margin,
                width=self.style.logo_width,
                asset_ref=self.style.logo_ref,
                opacity=self.style.logo_opacity,
            )
        )
        return self

    def add_footer_band(self) -> "OverlayBuilder":
        self._layers.append(
            OverlayDescriptor(
                role=LayerRole.FOOTER_BAND,
                anchor=Anchor.SOUTH_WEST,
                width=self.fmt.canvas_width,
                height=self.fmt.footer_reserved_height,
                opacity=self.style.footer_opacity,
                color=self.style.footer_fill,
            )
        )
        return self

    def add_text(
        self,
        role: LayerRole,
        text: str,
        *,
        anchor: Anchor,
        x: int,
        y: int,
        font_size: int,
        bold: bool = False,
    ) -> "OverlayBuilder":
        self._layers.append(
            OverlayDescriptor(
                role=role,
                anchor=anchor,
                x=x,
                y=y,
                text=TextSpec(
                    text=escape_text(text),
                    font_family=self.style.font_family,
                    font_size=font_size,
                    font_weight="bold" if bold else None,
                ),
                color=self.style.text_color,
            )
        )
        return self

    def build(self) -> List[OverlayDescriptor]:
        return list(self._layers)


def compose_overlays(
    rectangles: Sequence[LayoutRectangle],
    image_refs: Sequence[str],
    fmt: TargetFormat,
    stats: ShareStats,
    destination_names: Sequence[str] = (),
    style: ShareStyle = DEFAULT_STYLE,
) -> List[OverlayDescriptor]:
    """
    Build the layer stack for one share image.

    Order: photos (paired positionally with ``rectangles``), logo, footer
    band, stats line, optional destinations line, call to action.

    Raises:
        ValueError: If ``rectangles`` and ``image_refs`` differ in length.
    """
    if len(rectangles) != len(image_refs):
        raise ValueError(
            f"{len(rectangles)} rectangles for {len(image_refs)} images"
        )

    builder = OverlayBuilder(fmt, style)
    for rect, image_ref in zip(rectangles, image_refs):
        builder.add_photo(image_ref, rect)

    builder.add_logo()
    builder.add_footer_band()

    with_destinations = fmt.show_destination_names and len(destination_names) > 0
    builder.add_text(
        LayerRole.STATS,
        format_stats_line(stats),
        anchor=Anchor.SOUTH_WEST,
        x=FOOTER_TEXT_X,
        y=55 if with_destinations else 25,
        font_size=32,
        bold=True,
    )
    if with_destinations:
        builder.add_text(
            LayerRole.DESTINATIONS,
            format_destinations_line(destination_names),
            anchor=Anchor.SOUTH_WEST,
            x=FOOTER_TEXT_X,
            y=30,
            font_size=24,
        )
    builder.add_text(
        LayerRole.CTA,
        style.cta_text,
        anchor=Anchor.SOUTH_EAST,
        x=FOOTER_TEXT_X,
        y=30 if with_destinations else 25,
        font_size=24,
        bold=True,
    )
    return builder.build()
