import unittest
from unittest.mock import patch

from fastapi import HTTPException

from backend import dependencies
from backend.config import Settings
from backend.render import CloudinaryRenderService, InMemoryRenderService


def _settings(**overrides):
    fields = dict(
        use_in_memory_backends=False,
        cloudinary_cloud_name=None,
        cloudinary_api_key=None,
        cloudinary_api_secret=None,
    )
    fields.update(overrides)
    return Settings(**fields)


class RendererWiringTests(unittest.TestCase):
    def setUp(self):
        dependencies.get_renderer.cache_clear()

    def tearDown(self):
        dependencies.get_renderer.cache_clear()

    def test_missing_credentials_return_503(self):
        with patch.object(dependencies, "get_settings", return_value=_settings()):
            with self.assertLogs("backend.dependencies", level="ERROR"):
                with self.assertRaises(HTTPException) as ctx:
                    dependencies.get_renderer()
        self.assertEqual(ctx.exception.status_code, 503)

    def test_in_memory_renderer_only_when_requested(self):
        settings = _settings(use_in_memory_backends=True)
        with patch.object(dependencies, "get_settings", return_value=settings):
            renderer = dependencies.get_renderer()
        self.assertIsInstance(renderer, InMemoryRenderService)

    def test_cloudinary_renderer_when_configured(self):
        settings = _settings(
            cloudinary_cloud_name="demo",
            cloudinary_api_key="key",
            cloudinary_api_secret="secret",
            share_asset_folder="brand",
        )
        with patch.object(dependencies, "get_settings", return_value=settings):
            renderer = dependencies.get_renderer()
        self.assertIsInstance(renderer, CloudinaryRenderService)
        self.assertEqual(renderer.band_public_id, "brand/footer_band")


if __name__ == "__main__":
    unittest.main()
