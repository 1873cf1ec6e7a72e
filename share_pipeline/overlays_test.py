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


import unittest
from urllib.parse import unquote

from share_pipeline import overlays
from share_pipeline.formats import SOCIAL_FORMATS
from share_pipeline.layout import plan_layout
from share_pipeline.overlays import Anchor, LayerKind, LayerRole
from shared.types import ShareStats


def _compose(fmt_key, count, names=(), stats=ShareStats(total=14, completed=3)):
    fmt = SOCIAL_FORMATS[fmt_key]
    rects = plan_layout(count, fmt)
    refs = [f"ma-bucket-liste/activities/photo_{i}" for i in range(len(rects))]
    return overlays.compose_overlays(rects, refs, fmt, stats, names), rects, refs


class ComposeOverlaysTest(unittest.TestCase):

    def test_stacking_order_with_destinations(self):
        layers, _, _ = _compose("instagram", 4, ["Lisbon", "Kyoto"])
        self.assertEqual(
            [layer.role for layer in layers],
            [LayerRole.PHOTO] * 4
            + [
                LayerRole.LOGO,
                LayerRole.FOOTER_BAND,
                LayerRole.STATS,
                LayerRole.DESTINATIONS,
                LayerRole.CTA,
            ],
        )

    def test_destinations_omitted_for_formats_without_them(self):
        layers, _, _ = _compose("facebook", 2, ["Lisbon", "Kyoto"])
        roles = [layer.role for layer in layers]
        self.assertNotIn(LayerRole.DESTINATIONS, roles)
        self.assertEqual(roles[-3:], [LayerRole.FOOTER_BAND, LayerRole.STATS, LayerRole.CTA])

    def test_destinations_omitted_when_no_names(self):
        layers, _, _ = _compose("instagram", 2)
        self.assertNotIn(LayerRole.DESTINATIONS, [layer.role for layer in layers])
        stats = next(layer for layer in layers if layer.role is LayerRole.STATS)
        self.assertEqual(stats.y, 25)

    def test_photos_pair_with_rectangles(self):
        layers, rects, refs = _compose("twitter", 5)
        photos = [layer for layer in layers if layer.role is LayerRole.PHOTO]
        self.assertEqual([p.asset_ref for p in photos], refs)
        for photo, rect in zip(photos, rects):
            self.assertEqual((photo.x, photo.y), (rect.x, rect.y))
            self.assertEqual((photo.width, photo.height), (rect.width, rect.height))
            self.assertEqual(photo.crop, "fill")
            self.assertEqual(photo.crop_gravity, "center")
            self.assertIs(photo.anchor, Anchor.NORTH_WEST)
            self.assertIs(photo.kind, LayerKind.IMAGE)

    def test_zero_photos_still_produces_branding(self):
        layers, _, _ = _compose("stories", 0)
        self.assertEqual(
            [layer.role for layer in layers],
            [LayerRole.LOGO, LayerRole.FOOTER_BAND, LayerRole.STATS, LayerRole.CTA],
        )

    def test_footer_band_spans_canvas(self):
        layers, _, _ = _compose("stories", 1)
        band = next(layer for layer in layers if layer.role is LayerRole.FOOTER_BAND)
        self.assertEqual((band.width, band.height), (1080, 100))
        self.assertIs(band.anchor, Anchor.SOUTH_WEST)
        self.assertIs(band.kind, LayerKind.SHAPE)
        self.assertEqual(band.opacity, 70)

    def test_logo_top_right(self):
        layers, _, _ = _compose("instagram", 1)
        logo = next(layer for layer in layers if layer.role is LayerRole.LOGO)
        self.assertIs(logo.anchor, Anchor.NORTH_EAST)
        self.assertEqual(logo.asset_ref, overlays.DEFAULT_STYLE.logo_ref)
        self.assertEqual((logo.x, logo.y, logo.width), (20, 20, 120))

    def test_stats_text_is_escaped(self):
        layers, _, _ = _compose("facebook", 1)
        stats = next(layer for layer in layers if layer.role is LayerRole.STATS)
        self.assertEqual(unquote(stats.text.text), "✅ 3/14 completed (21%)")
        self.assertNotIn(" ", stats.text.text)
        self.assertNotIn("/", stats.text.text)
        self.assertEqual(stats.text.font_weight, "bold")

    def test_mismatched_inputs_raise(self):
        fmt = SOCIAL_FORMATS["instagram"]
        with self.assertRaises(ValueError):
            overlays.compose_overlays(
                plan_layout(2, fmt), ["only_one"], fmt, ShareStats(1, 0)
            )

    def test_composition_is_deterministic(self):
        first, _, _ = _compose("instagram", 6, ["A", "B"])
        second, _, _ = _compose("instagram", 6, ["A", "B"])
        self.assertEqual(first, second)


class TextHelpersTest(unittest.TestCase):

    def test_truncate_title(self):
        self.assertEqual(overlays.truncate_title("Kyoto"), "Kyoto")
        self.assertEqual(
            overlays.truncate_title("Machu Picchu Sunrise Trek"), "Machu Picchu Su..."
        )
        self.assertEqual(overlays.truncate_title(""), "Activity")
        self.assertEqual(overlays.truncate_title(None), "Activity")

    def test_destinations_line_caps_names(self):
        names = ["A", "B", "C", "D", "E", "F"]
        self.assertEqual(
            overlays.format_destinations_line(names), "🌍 A • B • C • D • E..."
        )
        self.assertEqual(overlays.format_destinations_line(["A", "B"]), "🌍 A • B")

    def test_stats_line_with_no_activities(self):
        self.assertEqual(
            overlays.format_stats_line(ShareStats(total=0, completed=0)),
            "✅ 0/0 completed (0%)",
        )

    def test_escape_text_handles_reserved_characters(self):
        self.assertEqual(overlays.escape_text("50%, a/b"), "50%25%2C%20a%2Fb")


class ShareStatsTest(unittest.TestCase):

    def test_completion_rate_rounds(self):
        self.assertEqual(ShareStats(total=14, completed=3).completion_rate, 21)
        self.assertEqual(ShareStats(total=8, completed=1).completion_rate, 13)
        self.assertEqual(ShareStats(total=3, completed=3).completion_rate, 100)
        self.assertEqual(ShareStats(total=0, completed=0).completion_rate, 0)


if __name__ == "__main__":
    unittest.main()
