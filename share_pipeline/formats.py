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
Social-platform output profiles for share collages.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping

from share_pipeline.errors import ConfigurationError

MAX_SUPPORTED_IMAGES = 9


class Orientation(Enum):
    SQUARE = "square"
    LANDSCAPE = "landscape"
    TALL = "tall"


@dataclass(frozen=True)
class TargetFormat:
    key: str
    name: str
    canvas_width: int
    canvas_height: int
    max_images: int
    header_reserved_height: int
    footer_reserved_height: int
    show_destination_names: bool
    orientation: Orientation

    def __post_init__(self):
        if self.canvas_width <= 0 or self.canvas_height <= 0:
            raise ConfigurationError(f"{self.key}: canvas dimensions must be positive")
        if self.header_reserved_height < 0 or self.footer_reserved_height < 0:
            raise ConfigurationError(f"{self.key}: reserved bands must be >= 0")
        if (
            self.header_reserved_height + self.footer_reserved_height
            >= self.canvas_height
        ):
            raise ConfigurationError(
                f"{self.key}: header and footer leave no room for photos"
            )
        if not 1 <= self.max_images <= MAX_SUPPORTED_IMAGES:
            raise ConfigurationError(
                f"{self.key}: max_images must be between 1 and {MAX_SUPPORTED_IMAGES}"
            )

    @property
    def is_tall(self) -> bool:
        return self.orientation is Orientation.TALL

    @property
    def grid_height(self) -> int:
        return (
            self.canvas_height
            - self.header_reserved_height
            - self.footer_reserved_height
        )


SOCIAL_FORMATS: Dict[str, TargetFormat] = {
    "instagram": TargetFormat(
        key="instagram",
        name="Instagram Post",
        canvas_width=1080,
        canvas_height=1080,
        max_images=9,
        header_reserved_height=70,
        footer_reserved_height=90,
        show_destination_names=True,
        orientation=Orientation.SQUARE,
    ),
    "facebook": TargetFormat(
        key="facebook",
        name="Facebook",
        canvas_width=1200,
        canvas_height=630,
        max_images=6,
        header_reserved_height=60,
        footer_reserved_height=70,
        show_destination_names=False,
        orientation=Orientation.LANDSCAPE,
    ),
    "twitter": TargetFormat(
        key="twitter",
        name="Twitter",
        canvas_width=1200,
        canvas_height=675,
        max_images=6,
        header_reserved_height=60,
        footer_reserved_height=70,
        show_destination_names=False,
        orientation=Orientation.LANDSCAPE,
    ),
    "stories": TargetFormat(
        key="stories",
        name="Instagram Stories",
        canvas_width=1080,
        canvas_height=1920,
        max_images=6,
        header_reserved_height=80,
        footer_reserved_height=100,
        show_destination_names=False,
        orientation=Orientation.TALL,
    ),
}


def get_format(
    key: str, formats: Mapping[str, TargetFormat] = SOCIAL_FORMATS
) -> TargetFormat:
    try:
        return formats[key]
    except KeyError:
        raise ConfigurationError(f"Unknown share format: {key!r}") from None
