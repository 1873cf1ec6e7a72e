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
Grid layout planning for share collages.

Photos are packed row-major into the band left between the header (logo) and
the footer (stats and call to action). The grid shape comes from a fixed
table keyed by photo count; tall formats trade columns for rows.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Tuple, Union

from share_pipeline.errors import ConfigurationError
from share_pipeline.formats import Orientation, TargetFormat, get_format

logger = logging.getLogger(__name__)

GRID_GAP = 10
GRID_MARGIN = 20

# count -> (rows, cols)
WIDE_GRID_SHAPES: Dict[int, Tuple[int, int]] = {
    1: (1, 1),
    2: (1, 2),
    3: (1, 3),
    4: (2, 2),
    5: (2, 3),
    6: (2, 3),
    7: (2, 4),
    8: (2, 4),
    9: (3, 3),
}

TALL_GRID_SHAPES: Dict[int, Tuple[int, int]] = {
    1: (1, 1),
    2: (2, 1),
    3: (3, 1),
    4: (2, 2),
    5: (2, 3),
    6: (3, 2),
    7: (4, 2),
    8: (4, 2),
    9: (3, 3),
}

# Square canvases lay out three photos as one tall tile plus two stacked ones.
SPAN_GRID_SHAPE = (2, 2)


@dataclass(frozen=True)
class LayoutRectangle:
    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    def overlaps(self, other: "LayoutRectangle") -> bool:
        """True when the interiors intersect; shared edges do not count."""
        return (
            self.x < other.right
            and other.x < self.right
            and self.y < other.bottom
            and other.y < self.bottom
        )


def grid_shape(image_count: int, fmt: TargetFormat) -> Tuple[int, int]:
    if image_count == 3 and fmt.orientation is Orientation.SQUARE:
        return SPAN_GRID_SHAPE
    shapes = TALL_GRID_SHAPES if fmt.is_tall else WIDE_GRID_SHAPES
    try:
        return shapes[image_count]
    except KeyError:
        raise ConfigurationError(
            f"No grid shape for {image_count} images in {fmt.key}"
        ) from None


def _cell_size(available: int, cells: int, fmt: TargetFormat) -> int:
    size = (available - 2 * GRID_MARGIN - GRID_GAP * (cells - 1)) // cells
    if size <= 0:
        raise ConfigurationError(f"{fmt.key}: canvas too small for {cells} cells")
    return size


def plan_layout(
    image_count: int, fmt: Union[TargetFormat, str]
) -> List[LayoutRectangle]:
    """
    Compute one pixel rectangle per photo for the given format.

    Args:
        image_count: Number of photos available. Only the first
            ``fmt.max_images`` are placed.
        fmt: A TargetFormat or the key of one of the built-in formats.

    Returns:
        Rectangles in canvas pixel space, row-major, one per placed photo.

    Raises:
        ConfigurationError: If ``fmt`` is an unknown format key.
        ValueError: If ``image_count`` is negative.
    """
    if isinstance(fmt, str):
        fmt = get_format(fmt)
    if image_count < 0:
        raise ValueError("image_count must be >= 0")

    count = min(image_count, fmt.max_images)
    if count == 0:
        return []

    available_width = fmt.canvas_width
    available_height = fmt.grid_height
    rows, cols = grid_shape(count, fmt)
    cell_width = _cell_size(available_width, cols, fmt)
    cell_height = _cell_size(available_height, rows, fmt)
    top = fmt.header_reserved_height + GRID_MARGIN

    logger.debug(
        "[LAYOUT] %s: %d images, grid %dx%d, cell %dx%d",
        fmt.key,
        count,
        rows,
        cols,
        cell_width,
        cell_height,
    )

    if count == 3 and (rows, cols) == SPAN_GRID_SHAPE:
        right_x = GRID_MARGIN + cell_width + GRID_GAP
        return [
            LayoutRectangle(
                GRID_MARGIN, top, cell_width, available_height - 2 * GRID_MARGIN
            ),
            LayoutRectangle(right_x, top, cell_width, cell_height),
            LayoutRectangle(
                right_x, top + cell_height + GRID_GAP, cell_width, cell_height
            ),
        ]

    rectangles: List[LayoutRectangle] = []
    for index in range(count):
        row, col = divmod(index, cols)
        rectangles.append(
            LayoutRectangle(
                x=GRID_MARGIN + col * (cell_width + GRID_GAP),
                y=top + row * (cell_height + GRID_GAP),
                width=cell_width,
                height=cell_height,
            )
        )
    return rectangles
