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
Share-set generation: one collage per social format for a user's activities.

Layout and overlay composition are pure; the only blocking work is the render
submission, which is fanned out across formats and joined with a shared
deadline so total latency tracks the slowest format.
"""

from __future__ import annotations

import concurrent.futures
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

from share_pipeline.errors import (
    AllFormatsFailedError,
    NoValidImagesError,
    RenderServiceError,
)
from share_pipeline.formats import SOCIAL_FORMATS, TargetFormat
from share_pipeline.layout import plan_layout
from share_pipeline.overlays import (
    DEFAULT_STYLE,
    OverlayDescriptor,
    ShareStyle,
    compose_overlays,
)
from shared.types import ActivityImage, CompositionRequest, ShareStats

logger = logging.getLogger(__name__)

IMAGE_REF_PATTERN = re.compile(r"^[A-Za-z0-9_\-]+(?:/[A-Za-z0-9_\-.]+)*$")
MAX_IMAGE_REF_LENGTH = 255
DEFAULT_ASSET_FOLDER = "ma-bucket-liste"


@dataclass(frozen=True)
class CanvasSpec:
    width: int
    height: int
    background: str = "white"


@dataclass(frozen=True)
class RenderJob:
    format_key: str
    public_id: str
    canvas: CanvasSpec
    overlays: Tuple[OverlayDescriptor, ...]
    output_format: str = "jpg"
    quality: str = "auto:good"
    caption: Optional[str] = None


@dataclass(frozen=True)
class RenderResult:
    url: str
    public_id: Optional[str] = None


class RenderService(Protocol):
    """Remote renderer that turns a canvas plus layers into a hosted image."""

    def render(self, job: RenderJob) -> RenderResult:
        ...


@dataclass
class FormatRender:
    url: str
    width: int
    height: int
    image_count: int
    public_id: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "url": self.url,
            "width": self.width,
            "height": self.height,
            "image_count": self.image_count,
            "public_id": self.public_id,
        }


@dataclass
class ShareSet:
    stats: ShareStats
    images: Dict[str, FormatRender] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def partial(self) -> bool:
        return bool(self.images) and bool(self.errors)


def is_valid_image_ref(image_ref: Optional[str]) -> bool:
    if not image_ref or len(image_ref) > MAX_IMAGE_REF_LENGTH:
        return False
    if ".." in image_ref:
        return False
    return bool(IMAGE_REF_PATTERN.match(image_ref))


def select_shareable(activities: Sequence[ActivityImage]) -> List[ActivityImage]:
    """Drop activities without a usable image reference."""
    valid = []
    for activity in activities:
        if is_valid_image_ref(activity.image_ref):
            valid.append(activity)
        else:
            logger.warning(
                "[SHARE] Skipping activity without usable image: %s (%r)",
                activity.title or activity.activity_id or "unknown",
                activity.image_ref,
            )
    return valid


def sort_for_display(activities: Sequence[ActivityImage]) -> List[ActivityImage]:
    """Completed first; relative order is otherwise preserved."""
    return sorted(activities, key=lambda activity: activity.status.display_rank)


def build_render_job(
    fmt: TargetFormat,
    activities: Sequence[ActivityImage],
    request: CompositionRequest,
    *,
    style: ShareStyle = DEFAULT_STYLE,
    asset_folder: str = DEFAULT_ASSET_FOLDER,
) -> RenderJob:
    selected = list(activities[: fmt.max_images])
    rectangles = plan_layout(len(selected), fmt)
    overlays = compose_overlays(
        rectangles,
        [activity.image_ref for activity in selected],
        fmt,
        request.stats,
        [activity.title for activity in selected],
        style=style,
    )
    return RenderJob(
        format_key=fmt.key,
        public_id=(
            f"{asset_folder}/shares/"
            f"user_{request.owner_id}_{fmt.key}_{request.share_id}"
        ),
        canvas=CanvasSpec(width=fmt.canvas_width, height=fmt.canvas_height),
        overlays=tuple(overlays),
        caption=f"Bucket list of {request.branding_name}",
    )


def generate_share_set(
    request: CompositionRequest,
    renderer: RenderService,
    *,
    formats: Optional[Mapping[str, TargetFormat]] = None,
    timeout_seconds: Optional[float] = None,
    max_workers: Optional[int] = None,
    style: ShareStyle = DEFAULT_STYLE,
    asset_folder: str = DEFAULT_ASSET_FOLDER,
) -> ShareSet:
    """
    Render one share image per format.

    Args:
        request: Activities, aggregate stats and branding for one user.
        renderer: Render service that receives one job per format.
        formats: Formats to produce; defaults to all built-in formats.
        timeout_seconds: Deadline shared by all render jobs. A job still
            running when it passes is recorded as a failure for its format.
        max_workers: Upper bound on concurrent render submissions.

    Returns:
        A ShareSet with rendered images and per-format errors.

    Raises:
        NoValidImagesError: If no activity has a usable image reference.
        AllFormatsFailedError: If every format failed to render.
    """
    formats = SOCIAL_FORMATS if formats is None else formats
    shareable = select_shareable(request.activities)
    logger.info(
        "[SHARE] owner=%s activities=%d with images=%d",
        request.owner_id,
        len(request.activities),
        len(shareable),
    )
    if not shareable:
        raise NoValidImagesError()

    ordered = sort_for_display(shareable)
    jobs = {
        key: build_render_job(
            fmt, ordered, request, style=style, asset_folder=asset_folder
        )
        for key, fmt in formats.items()
    }
    image_counts = {
        key: min(len(ordered), fmt.max_images) for key, fmt in formats.items()
    }

    share_set = ShareSet(stats=request.stats)
    if not jobs:
        return share_set

    executor = concurrent.futures.ThreadPoolExecutor(
        max_workers=max_workers or len(jobs)
    )
    futures = {key: executor.submit(renderer.render, job) for key, job in jobs.items()}
    deadline = None if timeout_seconds is None else time.monotonic() + timeout_seconds
    try:
        for key, future in futures.items():
            remaining = (
                None if deadline is None else max(0.0, deadline - time.monotonic())
            )
            try:
                result = future.result(timeout=remaining)
            except concurrent.futures.TimeoutError:
                future.cancel()
                share_set.errors[key] = f"Render timed out after {timeout_seconds}s"
                logger.warning("[%s] Render timed out", key.upper())
            except RenderServiceError as e:
                share_set.errors[key] = e.message
                logger.warning("[%s] Render failed (%s): %s", key.upper(), e.code, e.message)
            except Exception as e:
                # Adapter failures of any kind stay scoped to their format.
                share_set.errors[key] = str(e) or e.__class__.__name__
                logger.exception("[%s] Render raised unexpectedly", key.upper())
            else:
                fmt = formats[key]
                share_set.images[key] = FormatRender(
                    url=result.url,
                    width=fmt.canvas_width,
                    height=fmt.canvas_height,
                    image_count=image_counts[key],
                    public_id=result.public_id,
                )
                logger.info("[%s] Rendered %s", key.upper(), result.url)
    finally:
        executor.shutdown(wait=False)

    if not share_set.images:
        raise AllFormatsFailedError(share_set.errors)
    return share_set
