"""
Public share links: token generation, crawler detection and the Open Graph
landing page served at /share/{token}.
"""

from __future__ import annotations

import html
import logging
import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import quote

from backend.records import BucketListStore, ShareLinkRecord

logger = logging.getLogger(__name__)

TOKEN_CHARS = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789"
TOKEN_LENGTH = 8
MAX_GENERATION_ATTEMPTS = 10
DEFAULT_TTL_DAYS = 30
REDIRECT_DELAY_SECONDS = 3

BOT_PATTERN = re.compile(
    r"bot|crawler|spider|facebook|twitter|linkedin|pinterest|whatsapp|telegram|"
    r"slack|discordbot|bingpreview|googlebot|yandexbot|baiduspider|"
    r"facebookexternalhit|linkedinbot|slackbot",
    re.IGNORECASE,
)

IMAGE_DIMENSIONS = {
    "facebook": (1200, 630),
    "twitter": (1200, 675),
    "instagram": (1080, 1080),
    "stories": (1080, 1920),
    "linkedin": (1200, 630),
}


class ShareTokenError(Exception):
    pass


def generate_share_token() -> str:
    return "".join(secrets.choice(TOKEN_CHARS) for _ in range(TOKEN_LENGTH))


def generate_unique_share_token(
    store: BucketListStore, max_attempts: int = MAX_GENERATION_ATTEMPTS
) -> str:
    for attempt in range(1, max_attempts + 1):
        token = generate_share_token()
        if not store.share_token_exists(token):
            return token
        logger.info(
            "Share token collision, retrying (%d/%d)", attempt, max_attempts
        )
    raise ShareTokenError(
        f"Could not generate a unique share token after {max_attempts} attempts"
    )


def expiration_date(
    days: int = DEFAULT_TTL_DAYS, now: Optional[datetime] = None
) -> datetime:
    return (now or datetime.now(timezone.utc)) + timedelta(days=days)


def build_share_link(
    store: BucketListStore,
    *,
    user_id: str,
    platform: str,
    image_url: str,
    stats: dict,
    ttl_days: int = DEFAULT_TTL_DAYS,
) -> ShareLinkRecord:
    return ShareLinkRecord(
        share_token=generate_unique_share_token(store),
        user_id=user_id,
        platform=platform,
        image_url=image_url,
        stats=stats,
        expires_at=expiration_date(ttl_days),
    )


def is_bot(user_agent: Optional[str]) -> bool:
    if not user_agent:
        return False
    return bool(BOT_PATTERN.search(user_agent))


def build_social_links(share_url: str, text: str) -> dict:
    url = quote(share_url, safe="")
    message = quote(text, safe="")
    return {
        "facebook": f"https://www.facebook.com/sharer/sharer.php?u={url}&quote={message}",
        "twitter": f"https://twitter.com/intent/tweet?text={message}&url={url}",
        "linkedin": f"https://www.linkedin.com/sharing/share-offsite/?url={url}",
        "whatsapp": f"https://api.whatsapp.com/send?text={message}%20{url}",
        "telegram": f"https://t.me/share/url?url={url}&text={message}",
        "reddit": f"https://reddit.com/submit?url={url}&title={message}",
        "copy": share_url,
    }


def share_description(first_name: str, stats: dict) -> str:
    total = stats.get("total", 0)
    completed = stats.get("completed", 0)
    rate = stats.get("completion_rate", 0)
    return (
        f"Discover {first_name}'s bucket list: {total} activities, "
        f"{completed} completed. Progress: {rate}% 🚀"
    )


def render_share_page(
    link: ShareLinkRecord,
    profile: Optional[dict],
    share_url: str,
    *,
    for_bot: bool,
    frontend_url: str,
) -> str:
    profile = profile or {}
    first_name = profile.get("first_name") or "A traveller"
    last_name = profile.get("last_name") or ""
    full_name = f"{first_name} {last_name}".strip()
    width, height = IMAGE_DIMENSIONS.get(link.platform, (1200, 630))

    esc = html.escape
    title = esc(f"🎯 Bucket List - {full_name}")
    description = esc(share_description(first_name, link.stats))
    image_url = esc(link.image_url)
    page_url = esc(share_url)
    home = esc(frontend_url)

    if for_bot:
        redirect = ""
        body = (
            f"<main><h1>🎯 Bucket List</h1><p>{description}</p>"
            f'<img src="{image_url}" alt="{esc(full_name)}"></main>'
        )
    else:
        redirect = (
            f'<meta http-equiv="refresh" content="{REDIRECT_DELAY_SECONDS};url={home}">'
        )
        body = (
            "<main><h1>Loading the bucket list...</h1>"
            f"<p>Redirecting in {REDIRECT_DELAY_SECONDS} seconds</p>"
            f'<p><a href="{home}">Continue now</a></p></main>'
        )

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>{title}</title>
<meta property="og:type" content="website">
<meta property="og:url" content="{page_url}">
<meta property="og:title" content="{title}">
<meta property="og:description" content="{description}">
<meta property="og:image" content="{image_url}">
<meta property="og:image:width" content="{width}">
<meta property="og:image:height" content="{height}">
<meta property="og:image:type" content="image/jpeg">
<meta name="twitter:card" content="summary_large_image">
<meta name="twitter:url" content="{page_url}">
<meta name="twitter:title" content="{title}">
<meta name="twitter:description" content="{description}">
<meta name="twitter:image" content="{image_url}">
<meta name="description" content="{description}">
{redirect}
</head>
<body>
{body}
</body>
</html>"""


def _notice_page(title: str, message: str, frontend_url: str) -> str:
    home = html.escape(frontend_url)
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<title>{html.escape(title)}</title>
<meta http-equiv="refresh" content="5;url={home}">
</head>
<body>
<main><h2>{html.escape(title)}</h2><p>{html.escape(message)}</p>
<a href="{home}">Back to home</a></main>
</body>
</html>"""


def render_missing_page(frontend_url: str) -> str:
    return _notice_page(
        "Share link not found",
        "This share link does not exist or has been removed.",
        frontend_url,
    )


def render_expired_page(frontend_url: str, ttl_days: int = DEFAULT_TTL_DAYS) -> str:
    return _notice_page(
        "Share link expired",
        f"This share link has expired. Share links are valid for {ttl_days} days.",
        frontend_url,
    )
