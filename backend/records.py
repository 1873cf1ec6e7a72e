"""
Record store abstraction for Supabase and an in-memory test implementation.

The share pipeline only reads from here: a user's bucket-list entries with
their status and the activity -> image reference mapping. Rows come back in
more than one shape (image reference on the row itself or nested under the
joined activity), so they are normalized into ActivityImage before leaving
this module.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol

from shared.types import ActivityImage, ActivityStatus

ACTIVITY_JOIN = (
    "activity:activities(id, title, description, location, difficulty, "
    "cloudinary_public_id, category:categories(name, color), "
    "continent:continents(name))"
)
CATALOG_SELECT = "*, categories(name, icon), continents(name)"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value) -> Optional[datetime]:
    """Parse an ISO timestamp; values without an offset are read as UTC."""
    if value is None:
        return None
    if not isinstance(value, datetime):
        value = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def normalize_image_ref(raw: Optional[str], asset_folder: str) -> Optional[str]:
    """Bare ids live in the activities folder of the asset store."""
    if not raw:
        return None
    raw = raw.strip()
    if "/" not in raw:
        return f"{asset_folder}/activities/{raw}"
    return raw


def count_by_relation(rows: list[dict], relation: str) -> Dict[str, int]:
    """Count rows per joined relation name (e.g. categories -> name)."""
    counts: Dict[str, int] = {}
    for row in rows:
        name = (row.get(relation) or {}).get("name")
        if name:
            counts[name] = counts.get(name, 0) + 1
    return counts


def to_activity_image(
    row: dict,
    asset_folder: str,
    image_overrides: Optional[Dict[str, str]] = None,
) -> ActivityImage:
    """Flatten a bucket-list row (flat or with a joined activity)."""
    activity = row.get("activity") or {}
    activity_id = row.get("activity_id") or activity.get("id")
    raw_ref = None
    if image_overrides and activity_id is not None:
        raw_ref = image_overrides.get(str(activity_id))
    if not raw_ref:
        raw_ref = row.get("cloudinary_public_id") or activity.get(
            "cloudinary_public_id"
        )
    return ActivityImage(
        image_ref=normalize_image_ref(raw_ref, asset_folder) or "",
        title=row.get("title") or activity.get("title") or "",
        status=ActivityStatus.parse(row.get("status")),
        activity_id=str(activity_id) if activity_id is not None else None,
    )


@dataclass
class BucketItemRecord:
    id: str
    user_id: str
    activity_id: str
    status: ActivityStatus = ActivityStatus.PLANNED
    notes: Optional[str] = None
    priority: str = "medium"
    target_date: Optional[str] = None
    completion_date: Optional[str] = None
    rating: Optional[int] = None
    created_at: str = field(default_factory=_now_iso)
    updated_at: Optional[str] = None
    activity: Optional[dict] = None

    @classmethod
    def from_row(cls, row: dict) -> "BucketItemRecord":
        return cls(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            activity_id=str(row["activity_id"]),
            status=ActivityStatus.parse(row.get("status")),
            notes=row.get("notes"),
            priority=row.get("priority") or "medium",
            target_date=row.get("target_date"),
            completion_date=row.get("completion_date"),
            rating=row.get("rating"),
            created_at=row.get("created_at") or _now_iso(),
            updated_at=row.get("updated_at"),
            activity=row.get("activity"),
        )

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "activity_id": self.activity_id,
            "status": self.status.value,
            "notes": self.notes,
            "priority": self.priority,
            "target_date": self.target_date,
            "completion_date": self.completion_date,
            "rating": self.rating,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "activity": self.activity,
        }


@dataclass
class ShareLinkRecord:
    share_token: str
    user_id: str
    platform: str
    image_url: str
    stats: dict
    expires_at: datetime
    is_active: bool = True
    views_count: int = 0
    clicks_count: int = 0
    last_accessed_at: Optional[datetime] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: str = field(default_factory=_now_iso)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return not self.is_active or now > self.expires_at

    @classmethod
    def from_row(cls, row: dict) -> "ShareLinkRecord":
        return cls(
            id=str(row["id"]),
            share_token=row["share_token"],
            user_id=str(row["user_id"]),
            platform=row.get("platform") or "facebook",
            image_url=row.get("image_url") or "",
            stats=row.get("stats") or {},
            expires_at=parse_timestamp(row["expires_at"]),
            is_active=bool(row.get("is_active", True)),
            views_count=row.get("views_count") or 0,
            clicks_count=row.get("clicks_count") or 0,
            last_accessed_at=parse_timestamp(row.get("last_accessed_at")),
            created_at=row.get("created_at") or _now_iso(),
        )

    def to_row(self) -> dict:
        return {
            "share_token": self.share_token,
            "user_id": self.user_id,
            "platform": self.platform,
            "image_url": self.image_url,
            "stats": self.stats,
            "expires_at": self.expires_at.isoformat(),
            "is_active": self.is_active,
            "views_count": self.views_count,
            "clicks_count": self.clicks_count,
        }


class BucketListStore(Protocol):
    """Interface for the hosted record store."""

    def list_activities(
        self,
        *,
        category: Optional[str] = None,
        continent: Optional[str] = None,
        difficulty: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[dict]:
        ...

    def get_activity(self, activity_id: str) -> Optional[dict]:
        ...

    def search_activities(self, query: str, limit: int = 20) -> list[dict]:
        ...

    def list_categories(self) -> list[dict]:
        ...

    def list_continents(self) -> list[dict]:
        ...

    def catalog_stats(self) -> dict:
        """Total activity count plus counts by category and continent name."""
        ...

    def get_profile(self, user_id: str) -> Optional[dict]:
        ...

    def upsert_profile(self, user_id: str, fields: dict) -> dict:
        ...

    def list_bucket_items(
        self, user_id: str, status: Optional[ActivityStatus] = None
    ) -> list[BucketItemRecord]:
        ...

    def get_bucket_item(self, user_id: str, item_id: str) -> Optional[BucketItemRecord]:
        ...

    def find_bucket_item_by_activity(
        self, user_id: str, activity_id: str
    ) -> Optional[BucketItemRecord]:
        ...

    def add_bucket_item(
        self,
        user_id: str,
        activity_id: str,
        *,
        notes: Optional[str] = None,
        priority: str = "medium",
        target_date: Optional[str] = None,
    ) -> BucketItemRecord:
        ...

    def update_bucket_item(
        self, user_id: str, item_id: str, fields: dict
    ) -> Optional[BucketItemRecord]:
        ...

    def delete_bucket_item(self, user_id: str, item_id: str) -> bool:
        ...

    def list_share_activities(self, user_id: str) -> list[ActivityImage]:
        ...

    def share_token_exists(self, token: str) -> bool:
        ...

    def create_share_link(self, link: ShareLinkRecord) -> ShareLinkRecord:
        ...

    def get_share_link(self, token: str) -> Optional[ShareLinkRecord]:
        ...

    def record_share_link_access(
        self, link: ShareLinkRecord, *, is_click: bool, at: datetime
    ) -> ShareLinkRecord:
        ...


class InMemoryBucketListStore:
    """Simple in-memory store for development and tests."""

    def __init__(self, asset_folder: str = "ma-bucket-liste"):
        self.asset_folder = asset_folder
        self.activities: Dict[str, dict] = {}
        self.categories: Dict[str, dict] = {}
        self.continents: Dict[str, dict] = {}
        self.profiles: Dict[str, dict] = {}
        self.bucket_items: Dict[str, BucketItemRecord] = {}
        self.activity_images: Dict[str, str] = {}
        self.share_links: Dict[str, ShareLinkRecord] = {}

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.activities.clear()
        self.categories.clear()
        self.continents.clear()
        self.profiles.clear()
        self.bucket_items.clear()
        self.activity_images.clear()
        self.share_links.clear()

    def add_activity(self, activity: dict) -> dict:
        activity = dict(activity)
        activity.setdefault("id", uuid.uuid4().hex)
        activity.setdefault("created_at", _now_iso())
        self.activities[str(activity["id"])] = activity
        return activity

    def add_category(self, category: dict) -> dict:
        category = dict(category)
        category.setdefault("id", uuid.uuid4().hex)
        self.categories[str(category["id"])] = category
        return category

    def add_continent(self, continent: dict) -> dict:
        continent = dict(continent)
        continent.setdefault("id", uuid.uuid4().hex)
        self.continents[str(continent["id"])] = continent
        return continent

    def set_activity_image(self, activity_id: str, image_reference: str) -> None:
        self.activity_images[str(activity_id)] = image_reference

    def list_activities(
        self,
        *,
        category: Optional[str] = None,
        continent: Optional[str] = None,
        difficulty: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[dict]:
        items = sorted(
            self.activities.values(),
            key=lambda a: a.get("created_at", ""),
            reverse=True,
        )
        if category:
            items = [a for a in items if str(a.get("category_id")) == category]
        if continent:
            items = [a for a in items if str(a.get("continent_id")) == continent]
        if difficulty:
            items = [a for a in items if a.get("difficulty") == difficulty]
        return items[offset : offset + limit]

    def get_activity(self, activity_id: str) -> Optional[dict]:
        return self.activities.get(str(activity_id))

    def search_activities(self, query: str, limit: int = 20) -> list[dict]:
        needle = query.lower()
        matches = [
            a
            for a in self.activities.values()
            if any(
                needle in (a.get(key) or "").lower()
                for key in ("title", "description", "location")
            )
        ]
        return matches[:limit]

    def list_categories(self) -> list[dict]:
        return sorted(self.categories.values(), key=lambda c: c.get("name", ""))

    def list_continents(self) -> list[dict]:
        return sorted(self.continents.values(), key=lambda c: c.get("name", ""))

    def catalog_stats(self) -> dict:
        activities = list(self.activities.values())
        by_category = [
            {"categories": self.categories.get(str(a.get("category_id")))}
            for a in activities
            if a.get("category_id") is not None
        ]
        by_continent = [
            {"continents": self.continents.get(str(a.get("continent_id")))}
            for a in activities
            if a.get("continent_id") is not None
        ]
        return {
            "total_activities": len(activities),
            "by_category": count_by_relation(by_category, "categories"),
            "by_continent": count_by_relation(by_continent, "continents"),
        }

    def get_profile(self, user_id: str) -> Optional[dict]:
        return self.profiles.get(user_id)

    def upsert_profile(self, user_id: str, fields: dict) -> dict:
        profile = self.profiles.setdefault(
            user_id, {"user_id": user_id, "created_at": _now_iso()}
        )
        profile.update(fields)
        return profile

    def _with_activity(self, item: BucketItemRecord) -> BucketItemRecord:
        return replace(item, activity=self.activities.get(item.activity_id))

    def list_bucket_items(
        self, user_id: str, status: Optional[ActivityStatus] = None
    ) -> list[BucketItemRecord]:
        items = [
            self._with_activity(item)
            for item in self.bucket_items.values()
            if item.user_id == user_id and (status is None or item.status == status)
        ]
        # Insertion order stands in for created_at; newest first.
        return list(reversed(items))

    def get_bucket_item(self, user_id: str, item_id: str) -> Optional[BucketItemRecord]:
        item = self.bucket_items.get(item_id)
        if not item or item.user_id != user_id:
            return None
        return self._with_activity(item)

    def find_bucket_item_by_activity(
        self, user_id: str, activity_id: str
    ) -> Optional[BucketItemRecord]:
        for item in self.bucket_items.values():
            if item.user_id == user_id and item.activity_id == str(activity_id):
                return self._with_activity(item)
        return None

    def add_bucket_item(
        self,
        user_id: str,
        activity_id: str,
        *,
        notes: Optional[str] = None,
        priority: str = "medium",
        target_date: Optional[str] = None,
    ) -> BucketItemRecord:
        record = BucketItemRecord(
            id=uuid.uuid4().hex,
            user_id=user_id,
            activity_id=str(activity_id),
            notes=notes,
            priority=priority,
            target_date=target_date,
        )
        self.bucket_items[record.id] = record
        return self._with_activity(record)

    def update_bucket_item(
        self, user_id: str, item_id: str, fields: dict
    ) -> Optional[BucketItemRecord]:
        item = self.bucket_items.get(item_id)
        if not item or item.user_id != user_id:
            return None
        for key, value in fields.items():
            if key == "status":
                value = ActivityStatus.parse(value)
            setattr(item, key, value)
        return self._with_activity(item)

    def delete_bucket_item(self, user_id: str, item_id: str) -> bool:
        item = self.bucket_items.get(item_id)
        if not item or item.user_id != user_id:
            return False
        del self.bucket_items[item_id]
        return True

    def list_share_activities(self, user_id: str) -> list[ActivityImage]:
        return [
            to_activity_image(
                item.as_dict(), self.asset_folder, self.activity_images
            )
            for item in self.list_bucket_items(user_id)
        ]

    def share_token_exists(self, token: str) -> bool:
        return token in self.share_links

    def create_share_link(self, link: ShareLinkRecord) -> ShareLinkRecord:
        self.share_links[link.share_token] = link
        return link

    def get_share_link(self, token: str) -> Optional[ShareLinkRecord]:
        return self.share_links.get(token)

    def record_share_link_access(
        self, link: ShareLinkRecord, *, is_click: bool, at: datetime
    ) -> ShareLinkRecord:
        stored = self.share_links[link.share_token]
        stored.views_count += 1
        if is_click:
            stored.clicks_count += 1
        stored.last_accessed_at = at
        return stored


class SupabaseBucketListStore:
    """
    Supabase-backed implementation using the PostgREST query builder.
    Expects a client created with the service role key.
    """

    def __init__(self, client, asset_folder: str = "ma-bucket-liste"):
        self.client = client
        self.asset_folder = asset_folder

    @classmethod
    def from_credentials(
        cls, url: str, service_role_key: str, asset_folder: str = "ma-bucket-liste"
    ) -> "SupabaseBucketListStore":
        from supabase import create_client

        if not url or not service_role_key:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required")
        return cls(create_client(url, service_role_key), asset_folder=asset_folder)

    def _first(self, query) -> Optional[dict]:
        rows = query.limit(1).execute().data
        return rows[0] if rows else None

    def list_activities(
        self,
        *,
        category: Optional[str] = None,
        continent: Optional[str] = None,
        difficulty: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[dict]:
        query = (
            self.client.table("activities")
            .select(CATALOG_SELECT)
            .order("created_at", desc=True)
        )
        if continent:
            query = query.eq("continent_id", continent)
        if category:
            query = query.eq("category_id", category)
        if difficulty:
            query = query.eq("difficulty", difficulty)
        return query.range(offset, offset + limit - 1).execute().data

    def get_activity(self, activity_id: str) -> Optional[dict]:
        return self._first(
            self.client.table("activities").select(CATALOG_SELECT).eq("id", activity_id)
        )

    def search_activities(self, query: str, limit: int = 20) -> list[dict]:
        # PostgREST filter syntax treats commas and parentheses as separators.
        term = "".join(ch for ch in query if ch not in ",()")
        return (
            self.client.table("activities")
            .select(CATALOG_SELECT)
            .or_(
                f"title.ilike.%{term}%,description.ilike.%{term}%,"
                f"location.ilike.%{term}%"
            )
            .limit(limit)
            .execute()
            .data
        )

    def list_categories(self) -> list[dict]:
        return self.client.table("categories").select("*").order("name").execute().data

    def list_continents(self) -> list[dict]:
        return self.client.table("continents").select("*").order("name").execute().data

    def catalog_stats(self) -> dict:
        by_category = (
            self.client.table("activities")
            .select("category_id, categories(name)")
            .not_.is_("category_id", "null")
            .execute()
            .data
        )
        by_continent = (
            self.client.table("activities")
            .select("continent_id, continents(name)")
            .not_.is_("continent_id", "null")
            .execute()
            .data
        )
        total = (
            self.client.table("activities")
            .select("id", count="exact", head=True)
            .execute()
            .count
        )
        return {
            "total_activities": total or 0,
            "by_category": count_by_relation(by_category, "categories"),
            "by_continent": count_by_relation(by_continent, "continents"),
        }

    def get_profile(self, user_id: str) -> Optional[dict]:
        return self._first(
            self.client.table("user_profiles").select("*").eq("user_id", user_id)
        )

    def upsert_profile(self, user_id: str, fields: dict) -> dict:
        rows = (
            self.client.table("user_profiles")
            .upsert({"user_id": user_id, **fields}, on_conflict="user_id")
            .execute()
            .data
        )
        return rows[0] if rows else {"user_id": user_id, **fields}

    def _bucket_query(self, user_id: str):
        return (
            self.client.table("user_bucket_lists")
            .select(f"*, {ACTIVITY_JOIN}")
            .eq("user_id", user_id)
        )

    def list_bucket_items(
        self, user_id: str, status: Optional[ActivityStatus] = None
    ) -> list[BucketItemRecord]:
        query = self._bucket_query(user_id)
        if status is not None:
            query = query.eq("status", status.value)
        rows = query.order("created_at", desc=True).execute().data
        return [BucketItemRecord.from_row(row) for row in rows]

    def get_bucket_item(self, user_id: str, item_id: str) -> Optional[BucketItemRecord]:
        row = self._first(self._bucket_query(user_id).eq("id", item_id))
        return BucketItemRecord.from_row(row) if row else None

    def find_bucket_item_by_activity(
        self, user_id: str, activity_id: str
    ) -> Optional[BucketItemRecord]:
        row = self._first(self._bucket_query(user_id).eq("activity_id", activity_id))
        return BucketItemRecord.from_row(row) if row else None

    def add_bucket_item(
        self,
        user_id: str,
        activity_id: str,
        *,
        notes: Optional[str] = None,
        priority: str = "medium",
        target_date: Optional[str] = None,
    ) -> BucketItemRecord:
        rows = (
            self.client.table("user_bucket_lists")
            .insert(
                {
                    "user_id": user_id,
                    "activity_id": activity_id,
                    "status": ActivityStatus.PLANNED.value,
                    "notes": notes,
                    "priority": priority,
                    "target_date": target_date,
                    "created_at": _now_iso(),
                }
            )
            .execute()
            .data
        )
        created = self.get_bucket_item(user_id, str(rows[0]["id"]))
        return created or BucketItemRecord.from_row(rows[0])

    def update_bucket_item(
        self, user_id: str, item_id: str, fields: dict
    ) -> Optional[BucketItemRecord]:
        rows = (
            self.client.table("user_bucket_lists")
            .update(fields)
            .eq("id", item_id)
            .eq("user_id", user_id)
            .execute()
            .data
        )
        if not rows:
            return None
        return self.get_bucket_item(user_id, item_id)

    def delete_bucket_item(self, user_id: str, item_id: str) -> bool:
        rows = (
            self.client.table("user_bucket_lists")
            .delete()
            .eq("id", item_id)
            .eq("user_id", user_id)
            .execute()
            .data
        )
        return bool(rows)

    def list_share_activities(self, user_id: str) -> list[ActivityImage]:
        rows = [item.as_dict() for item in self.list_bucket_items(user_id)]
        activity_ids = [row["activity_id"] for row in rows]
        overrides: Dict[str, str] = {}
        if activity_ids:
            image_rows = (
                self.client.table("activity_images")
                .select("activity_id, image_reference")
                .in_("activity_id", activity_ids)
                .execute()
                .data
            )
            for image_row in image_rows:
                if image_row.get("image_reference"):
                    overrides.setdefault(
                        str(image_row["activity_id"]), image_row["image_reference"]
                    )
        return [to_activity_image(row, self.asset_folder, overrides) for row in rows]

    def share_token_exists(self, token: str) -> bool:
        row = self._first(
            self.client.table("share_links")
            .select("share_token")
            .eq("share_token", token)
        )
        return row is not None

    def create_share_link(self, link: ShareLinkRecord) -> ShareLinkRecord:
        rows = self.client.table("share_links").insert(link.to_row()).execute().data
        return ShareLinkRecord.from_row(rows[0])

    def get_share_link(self, token: str) -> Optional[ShareLinkRecord]:
        row = self._first(
            self.client.table("share_links").select("*").eq("share_token", token)
        )
        return ShareLinkRecord.from_row(row) if row else None

    def record_share_link_access(
        self, link: ShareLinkRecord, *, is_click: bool, at: datetime
    ) -> ShareLinkRecord:
        update = {
            "views_count": link.views_count + 1,
            "last_accessed_at": at.isoformat(),
        }
        if is_click:
            update["clicks_count"] = link.clicks_count + 1
        self.client.table("share_links").update(update).eq("id", link.id).execute()
        return replace(
            link,
            views_count=update["views_count"],
            clicks_count=update.get("clicks_count", link.clicks_count),
            last_accessed_at=at,
        )
