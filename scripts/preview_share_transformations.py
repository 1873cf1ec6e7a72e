"""
CLI helper to preview share collage layouts and render transformations offline.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.config import get_settings
from backend.dependencies import get_share_style
from backend.render import build_transformation
from share_pipeline.formats import SOCIAL_FORMATS, get_format
from share_pipeline.layout import plan_layout
from share_pipeline.share_set import build_render_job, sort_for_display
from shared.types import ActivityImage, ActivityStatus, CompositionRequest, ShareStats


def _sample_activities(count: int, completed: int, folder: str) -> list[ActivityImage]:
    return [
        ActivityImage(
            image_ref=f"{folder}/activities/sample_{index}",
            title=f"Sample destination {index}",
            status=(
                ActivityStatus.COMPLETED if index < completed else ActivityStatus.PLANNED
            ),
            activity_id=str(index),
        )
        for index in range(count)
    ]


def main() -> int:
    parser = argparse.ArgumentParser(description="Preview share image transformations")
    parser.add_argument(
        "-n",
        "--num-images",
        type=int,
        default=4,
        help="How many sample activities to lay out",
    )
    parser.add_argument(
        "-c",
        "--completed",
        type=int,
        default=1,
        help="How many of the sample activities are completed",
    )
    parser.add_argument(
        "-f",
        "--format",
        action="append",
        dest="formats",
        choices=sorted(SOCIAL_FORMATS),
        help="Format to preview (repeatable, default: all)",
    )
    parser.add_argument(
        "--name",
        type=str,
        default="Jane Doe",
        help="Branding name for the caption",
    )
    args = parser.parse_args()

    settings = get_settings()
    folder = settings.share_asset_folder
    activities = sort_for_display(
        _sample_activities(args.num_images, args.completed, folder)
    )
    request = CompositionRequest(
        activities=activities,
        stats=ShareStats(
            total=args.num_images, completed=min(args.completed, args.num_images)
        ),
        branding_name=args.name,
        owner_id="preview",
        share_id="preview",
    )
    style = get_share_style()
    band = f"{folder}/footer_band"

    for key in args.formats or list(SOCIAL_FORMATS):
        fmt = get_format(key)
        print(f"== {fmt.name} ({fmt.canvas_width}x{fmt.canvas_height})")
        for rect in plan_layout(len(activities), fmt):
            print(f"  rect x={rect.x} y={rect.y} w={rect.width} h={rect.height}")
        job = build_render_job(
            fmt, activities, request, style=style, asset_folder=folder
        )
        print(f"  public_id: {job.public_id}")
        print(f"  transformation: {build_transformation(job, band)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
