import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from backend import share_links
from backend.records import InMemoryBucketListStore, ShareLinkRecord


def _link(**overrides):
    fields = dict(
        share_token="AbCd1234",
        user_id="u1",
        platform="instagram",
        image_url="https://cdn.test/a.jpg?x=1&y=2",
        stats={"total": 10, "completed": 4, "completion_rate": 40},
        expires_at=datetime.now(timezone.utc) + timedelta(days=1),
    )
    fields.update(overrides)
    return ShareLinkRecord(**fields)


class ShareTokenTests(unittest.TestCase):
    def test_token_shape(self):
        token = share_links.generate_share_token()
        self.assertEqual(len(token), share_links.TOKEN_LENGTH)
        self.assertTrue(set(token) <= set(share_links.TOKEN_CHARS))

    def test_collisions_are_retried(self):
        store = InMemoryBucketListStore()
        store.create_share_link(_link(share_token="taken000"))
        with patch.object(
            share_links, "generate_share_token", side_effect=["taken000", "fresh000"]
        ):
            self.assertEqual(share_links.generate_unique_share_token(store), "fresh000")

    def test_gives_up_after_max_attempts(self):
        store = InMemoryBucketListStore()
        store.create_share_link(_link(share_token="taken000"))
        with patch.object(share_links, "generate_share_token", return_value="taken000"):
            with self.assertRaises(share_links.ShareTokenError):
                share_links.generate_unique_share_token(store, max_attempts=3)

    def test_build_share_link_sets_expiry(self):
        store = InMemoryBucketListStore()
        before = datetime.now(timezone.utc)
        link = share_links.build_share_link(
            store,
            user_id="u1",
            platform="facebook",
            image_url="https://cdn.test/a.jpg",
            stats={},
            ttl_days=7,
        )
        self.assertGreaterEqual(link.expires_at, before + timedelta(days=7))
        self.assertLess(link.expires_at, before + timedelta(days=7, minutes=1))
        self.assertFalse(link.is_expired())


class CrawlerDetectionTests(unittest.TestCase):
    def test_is_bot(self):
        self.assertTrue(share_links.is_bot("facebookexternalhit/1.1"))
        self.assertTrue(share_links.is_bot("Mozilla/5.0 (compatible; Googlebot/2.1)"))
        self.assertTrue(share_links.is_bot("WhatsApp/2.23"))
        self.assertFalse(share_links.is_bot("Mozilla/5.0 (Macintosh) Safari/605.1"))
        self.assertFalse(share_links.is_bot(None))


class SharePageTests(unittest.TestCase):
    def test_bot_page_has_open_graph_tags(self):
        page = share_links.render_share_page(
            _link(),
            {"first_name": "Jane", "last_name": "<Doe>"},
            "https://api.test/share/AbCd1234",
            for_bot=True,
            frontend_url="https://app.test",
        )
        self.assertIn('content="https://cdn.test/a.jpg?x=1&amp;y=2"', page)
        self.assertIn('property="og:image:width" content="1080"', page)
        self.assertIn("Jane &lt;Doe&gt;", page)
        self.assertNotIn("<Doe>", page)
        self.assertNotIn("http-equiv", page)

    def test_human_page_redirects(self):
        page = share_links.render_share_page(
            _link(), None, "https://api.test/share/x", for_bot=False,
            frontend_url="https://app.test",
        )
        self.assertIn('content="3;url=https://app.test"', page)
        self.assertIn("A traveller", page)

    def test_social_links_are_url_encoded(self):
        links = share_links.build_social_links("https://api.test/share/x", "3/4 done")
        self.assertEqual(links["copy"], "https://api.test/share/x")
        self.assertIn("u=https%3A%2F%2Fapi.test%2Fshare%2Fx", links["facebook"])
        self.assertIn("text=3%2F4%20done", links["twitter"])

    def test_expired_page_mentions_ttl(self):
        self.assertIn("30 days", share_links.render_expired_page("https://app.test"))


if __name__ == "__main__":
    unittest.main()
