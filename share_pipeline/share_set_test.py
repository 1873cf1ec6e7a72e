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


import time
import unittest

from backend.render import InMemoryRenderService
from share_pipeline import share_set
from share_pipeline.errors import AllFormatsFailedError, NoValidImagesError
from share_pipeline.formats import SOCIAL_FORMATS
from share_pipeline.overlays import LayerRole
from shared.types import ActivityImage, ActivityStatus, CompositionRequest, ShareStats

PLANNED = ActivityStatus.PLANNED
COMPLETED = ActivityStatus.COMPLETED


def _activity(name, status=PLANNED, image_ref=None):
    return ActivityImage(
        image_ref=f"ma-bucket-liste/activities/{name}" if image_ref is None else image_ref,
        title=name,
        status=status,
        activity_id=name,
    )


def _request(activities, owner_id="u1"):
    completed = sum(1 for a in activities if a.status is COMPLETED)
    return CompositionRequest(
        activities=activities,
        stats=ShareStats(total=len(activities), completed=completed),
        branding_name="Jane Doe",
        owner_id=owner_id,
        share_id="1700000000000",
    )


class ExplodingRenderService:
    def render(self, job):
        if job.format_key == "twitter":
            raise RuntimeError("connection reset")
        return share_set.RenderResult(url=f"https://cdn.test/{job.format_key}.jpg")


class SlowFormatRenderService:
    def __init__(self, slow_format, delay_seconds):
        self.slow_format = slow_format
        self.delay_seconds = delay_seconds

    def render(self, job):
        if job.format_key == self.slow_format:
            time.sleep(self.delay_seconds)
        return share_set.RenderResult(url=f"https://cdn.test/{job.format_key}.jpg")


class SelectionTest(unittest.TestCase):

    def test_sort_for_display_is_stable(self):
        ordered = share_set.sort_for_display(
            [
                _activity("A", PLANNED),
                _activity("B", COMPLETED),
                _activity("C", COMPLETED),
                _activity("D", PLANNED),
            ]
        )
        self.assertEqual([a.title for a in ordered], ["B", "C", "A", "D"])

    def test_in_progress_sorts_with_planned(self):
        ordered = share_set.sort_for_display(
            [
                _activity("A", ActivityStatus.IN_PROGRESS),
                _activity("B", PLANNED),
                _activity("C", COMPLETED),
            ]
        )
        self.assertEqual([a.title for a in ordered], ["C", "A", "B"])

    def test_image_ref_validation(self):
        self.assertTrue(share_set.is_valid_image_ref("ma-bucket-liste/activities/x_1"))
        self.assertTrue(share_set.is_valid_image_ref("sample"))
        self.assertFalse(share_set.is_valid_image_ref(""))
        self.assertFalse(share_set.is_valid_image_ref(None))
        self.assertFalse(share_set.is_valid_image_ref("a/../secret"))
        self.assertFalse(share_set.is_valid_image_ref("https://evil.test/x.jpg"))
        self.assertFalse(share_set.is_valid_image_ref("a" * 300))

    def test_select_shareable_skips_missing_images(self):
        activities = [_activity("A"), _activity("B", image_ref=""), _activity("C")]
        with self.assertLogs("share_pipeline.share_set", level="WARNING"):
            selected = share_set.select_shareable(activities)
        self.assertEqual([a.title for a in selected], ["A", "C"])


class GenerateShareSetTest(unittest.TestCase):

    def test_all_formats_rendered(self):
        renderer = InMemoryRenderService()
        activities = [_activity(f"a{i}") for i in range(15)]
        result = share_set.generate_share_set(_request(activities), renderer)

        self.assertEqual(set(result.images), set(SOCIAL_FORMATS))
        self.assertEqual(result.errors, {})
        self.assertFalse(result.partial)
        self.assertEqual(result.images["instagram"].image_count, 9)
        self.assertEqual(result.images["stories"].image_count, 6)
        self.assertEqual(
            (result.images["facebook"].width, result.images["facebook"].height),
            (1200, 630),
        )
        self.assertEqual(
            result.images["twitter"].url,
            "https://example.test/render/"
            "ma-bucket-liste/shares/user_u1_twitter_1700000000000.jpg",
        )

    def test_photo_layers_match_format_capacity(self):
        renderer = InMemoryRenderService()
        activities = [_activity(f"a{i}") for i in range(4)]
        share_set.generate_share_set(_request(activities), renderer)
        for job in renderer.submitted:
            photos = [o for o in job.overlays if o.role is LayerRole.PHOTO]
            self.assertEqual(len(photos), min(4, SOCIAL_FORMATS[job.format_key].max_images))
            self.assertEqual(job.caption, "Bucket list of Jane Doe")

    def test_completed_photos_placed_first(self):
        renderer = InMemoryRenderService()
        activities = [
            _activity("A", PLANNED),
            _activity("B", COMPLETED),
            _activity("C", COMPLETED),
            _activity("D", PLANNED),
        ]
        share_set.generate_share_set(
            _request(activities), renderer, formats={"facebook": SOCIAL_FORMATS["facebook"]}
        )
        (job,) = renderer.submitted
        refs = [o.asset_ref for o in job.overlays if o.role is LayerRole.PHOTO]
        self.assertEqual(
            refs, [f"ma-bucket-liste/activities/{name}" for name in "BCAD"]
        )

    def test_partial_failure_is_reported_not_raised(self):
        renderer = InMemoryRenderService(failing_formats={"stories"})
        result = share_set.generate_share_set(_request([_activity("A")]), renderer)
        self.assertEqual(set(result.images), {"instagram", "facebook", "twitter"})
        self.assertEqual(set(result.errors), {"stories"})
        self.assertTrue(result.partial)

    def test_unexpected_adapter_error_is_scoped_to_its_format(self):
        with self.assertLogs("share_pipeline.share_set", level="ERROR"):
            result = share_set.generate_share_set(
                _request([_activity("A")]), ExplodingRenderService()
            )
        self.assertEqual(result.errors, {"twitter": "connection reset"})
        self.assertEqual(len(result.images), 3)

    def test_no_valid_images_raises_before_rendering(self):
        renderer = InMemoryRenderService()
        activities = [_activity("A", image_ref=""), _activity("B", image_ref="../x")]
        with self.assertRaises(NoValidImagesError) as ctx:
            share_set.generate_share_set(_request(activities), renderer)
        self.assertEqual(renderer.submitted, [])
        self.assertIn("Add photos", ctx.exception.message)

    def test_empty_request_raises_no_valid_images(self):
        renderer = InMemoryRenderService()
        with self.assertRaises(NoValidImagesError):
            share_set.generate_share_set(_request([]), renderer)
        self.assertEqual(renderer.submitted, [])

    def test_all_formats_failing_raises(self):
        renderer = InMemoryRenderService(failing_formats=set(SOCIAL_FORMATS))
        with self.assertRaises(AllFormatsFailedError) as ctx:
            share_set.generate_share_set(_request([_activity("A")]), renderer)
        self.assertEqual(set(ctx.exception.errors), set(SOCIAL_FORMATS))

    def test_slow_renders_time_out(self):
        renderer = InMemoryRenderService(delay_seconds=0.5)
        with self.assertRaises(AllFormatsFailedError) as ctx:
            share_set.generate_share_set(
                _request([_activity("A")]),
                renderer,
                formats={"facebook": SOCIAL_FORMATS["facebook"]},
                timeout_seconds=0.05,
            )
        self.assertIn("timed out", ctx.exception.errors["facebook"])

    def test_one_slow_format_times_out_alone(self):
        renderer = SlowFormatRenderService("stories", delay_seconds=0.5)
        with self.assertLogs("share_pipeline.share_set", level="WARNING"):
            result = share_set.generate_share_set(
                _request([_activity("A")]), renderer, timeout_seconds=0.2
            )
        self.assertEqual(set(result.images), {"instagram", "facebook", "twitter"})
        self.assertEqual(list(result.errors), ["stories"])
        self.assertIn("timed out", result.errors["stories"])
        self.assertTrue(result.partial)

    def test_formats_render_concurrently(self):
        renderer = InMemoryRenderService(delay_seconds=0.4)
        started = time.monotonic()
        result = share_set.generate_share_set(_request([_activity("A")]), renderer)
        elapsed = time.monotonic() - started
        self.assertEqual(len(result.images), 4)
        self.assertLess(elapsed, 1.2)

    def test_stats_are_passed_through(self):
        activities = [_activity("A", COMPLETED)] + [_activity(f"p{i}") for i in range(13)]
        result = share_set.generate_share_set(_request(activities), InMemoryRenderService())
        self.assertEqual(result.stats.completion_rate, 7)


if __name__ == "__main__":
    unittest.main()
