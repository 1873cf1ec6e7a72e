"""
HTTP routes for the bucket list backend API.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from fastapi.responses import HTMLResponse

from backend.auth import AuthError, AuthUser, AuthVerifier
from backend.config import get_settings
from backend.dependencies import (
    get_auth_verifier,
    get_current_user,
    get_renderer,
    get_share_style,
    get_store,
)
from backend.records import BucketListStore
from backend.schemas import (
    ActivityListResponse,
    ActivityResponse,
    AddBucketItemRequest,
    AuthResponse,
    BucketItemResponse,
    BucketListResponse,
    CategoryListResponse,
    CatalogStatsResponse,
    ContinentListResponse,
    CreateShareLinkRequest,
    HealthResponse,
    LoginRequest,
    MeResponse,
    ProfileResponse,
    ProfileUpdateRequest,
    RegisterRequest,
    SearchResponse,
    ShareImagesRequest,
    ShareImagesResponse,
    ShareLinkResponse,
    StatsResponse,
    UpdateStatusRequest,
)
from backend.share_links import (
    ShareTokenError,
    build_share_link,
    build_social_links,
    is_bot,
    render_expired_page,
    render_missing_page,
    render_share_page,
)
from share_pipeline.errors import (
    AllFormatsFailedError,
    ConfigurationError,
    NoValidImagesError,
)
from share_pipeline.formats import get_format
from share_pipeline.overlays import ShareStyle
from share_pipeline.share_set import RenderService, generate_share_set
from shared.types import ActivityStatus, CompositionRequest, ShareStats

logger = logging.getLogger(__name__)

router = APIRouter()
public_router = APIRouter()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _display_name(profile: Optional[dict], user: AuthUser) -> str:
    profile = profile or {}
    full_name = " ".join(
        part for part in (profile.get("first_name"), profile.get("last_name")) if part
    )
    return full_name or profile.get("pseudo") or user.email or "A traveller"


def _status_counts(statuses: list[ActivityStatus]) -> StatsResponse:
    total = len(statuses)
    completed = statuses.count(ActivityStatus.COMPLETED)
    return StatsResponse(
        total=total,
        planned=statuses.count(ActivityStatus.PLANNED),
        in_progress=statuses.count(ActivityStatus.IN_PROGRESS),
        completed=completed,
        completion_rate=ShareStats(total=total, completed=completed).completion_rate,
    )


@router.get("/health", response_model=HealthResponse)
def health():
    return HealthResponse(status="ok")


@router.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(
    payload: RegisterRequest,
    verifier: AuthVerifier = Depends(get_auth_verifier),
    store: BucketListStore = Depends(get_store),
):
    pseudo = payload.pseudo or payload.first_name
    try:
        session = verifier.sign_up(
            payload.email,
            payload.password,
            {
                "first_name": payload.first_name,
                "last_name": payload.last_name,
                "pseudo": pseudo,
            },
        )
    except AuthError as e:
        raise HTTPException(status_code=400, detail=f"Registration failed: {e}")

    profile = store.upsert_profile(
        session.user.id,
        {
            "email": payload.email,
            "first_name": payload.first_name,
            "last_name": payload.last_name,
            "pseudo": pseudo,
        },
    )
    return AuthResponse(
        user=session.user.as_dict(),
        profile=profile,
        access_token=session.access_token,
        refresh_token=session.refresh_token,
    )


@router.post("/auth/login", response_model=AuthResponse)
def login(
    payload: LoginRequest,
    verifier: AuthVerifier = Depends(get_auth_verifier),
    store: BucketListStore = Depends(get_store),
):
    try:
        session = verifier.sign_in(payload.email, payload.password)
    except AuthError:
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return AuthResponse(
        user=session.user.as_dict(),
        profile=store.get_profile(session.user.id),
        access_token=session.access_token,
        refresh_token=session.refresh_token,
    )


@router.get("/auth/me", response_model=MeResponse)
def me(
    user: AuthUser = Depends(get_current_user),
    store: BucketListStore = Depends(get_store),
):
    return MeResponse(user=user.as_dict(), profile=store.get_profile(user.id))


@router.get("/activities", response_model=ActivityListResponse)
def list_activities(
    category: Optional[str] = Query(None),
    continent: Optional[str] = Query(None),
    difficulty: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    store: BucketListStore = Depends(get_store),
):
    data = store.list_activities(
        category=category,
        continent=continent,
        difficulty=difficulty,
        limit=limit,
        offset=offset,
    )
    return ActivityListResponse(data=data, count=len(data), limit=limit, offset=offset)


@router.get("/activities/{activity_id}", response_model=ActivityResponse)
def get_activity(activity_id: str, store: BucketListStore = Depends(get_store)):
    activity = store.get_activity(activity_id)
    if not activity:
        raise HTTPException(status_code=404, detail="Activity not found")
    return ActivityResponse(data=activity)


@router.get("/search", response_model=SearchResponse)
def search_activities(
    q: str = Query(..., min_length=1, max_length=100),
    limit: int = Query(20, ge=1, le=100),
    store: BucketListStore = Depends(get_store),
):
    data = store.search_activities(q, limit=limit)
    return SearchResponse(data=data, query=q, count=len(data))


@router.get("/categories", response_model=CategoryListResponse)
def list_categories(store: BucketListStore = Depends(get_store)):
    return CategoryListResponse(data=store.list_categories())


@router.get("/continents", response_model=ContinentListResponse)
def list_continents(store: BucketListStore = Depends(get_store)):
    return ContinentListResponse(data=store.list_continents())


@router.get("/stats", response_model=CatalogStatsResponse)
def catalog_stats(store: BucketListStore = Depends(get_store)):
    return CatalogStatsResponse(**store.catalog_stats())


@router.get("/user/profile", response_model=ProfileResponse)
def get_profile(
    user: AuthUser = Depends(get_current_user),
    store: BucketListStore = Depends(get_store),
):
    profile = store.get_profile(user.id)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return ProfileResponse(profile=profile)


@router.put("/user/profile", response_model=ProfileResponse)
def update_profile(
    payload: ProfileUpdateRequest,
    user: AuthUser = Depends(get_current_user),
    store: BucketListStore = Depends(get_store),
):
    fields = payload.model_dump(exclude_none=True)
    fields["updated_at"] = _now_iso()
    return ProfileResponse(profile=store.upsert_profile(user.id, fields))


@router.get("/user/bucket-list", response_model=BucketListResponse)
def list_bucket_items(
    status: Optional[str] = Query(None, pattern="^(planned|in_progress|completed)$"),
    user: AuthUser = Depends(get_current_user),
    store: BucketListStore = Depends(get_store),
):
    items = store.list_bucket_items(
        user.id, ActivityStatus(status) if status else None
    )
    return BucketListResponse(
        items=[item.as_dict() for item in items], total=len(items)
    )


@router.post("/user/bucket-list", response_model=BucketItemResponse, status_code=201)
def add_bucket_item(
    payload: AddBucketItemRequest,
    user: AuthUser = Depends(get_current_user),
    store: BucketListStore = Depends(get_store),
):
    if not store.get_activity(payload.activity_id):
        raise HTTPException(status_code=404, detail="Activity not found")
    if store.find_bucket_item_by_activity(user.id, payload.activity_id):
        raise HTTPException(
            status_code=409, detail="This activity is already in your bucket list"
        )
    item = store.add_bucket_item(
        user.id,
        payload.activity_id,
        notes=payload.notes,
        priority=payload.priority,
        target_date=payload.target_date,
    )
    return BucketItemResponse(item=item.as_dict())


@router.put("/user/bucket-list/{item_id}/status", response_model=BucketItemResponse)
def update_bucket_item_status(
    item_id: str,
    payload: UpdateStatusRequest,
    user: AuthUser = Depends(get_current_user),
    store: BucketListStore = Depends(get_store),
):
    fields: dict = {"status": payload.status, "updated_at": _now_iso()}
    if payload.notes:
        fields["notes"] = payload.notes
    if payload.status == ActivityStatus.COMPLETED.value:
        fields["completion_date"] = payload.completion_date or _now_iso()
        if payload.rating is not None and 1 <= payload.rating <= 5:
            fields["rating"] = payload.rating
    else:
        fields["completion_date"] = None

    item = store.update_bucket_item(user.id, item_id, fields)
    if not item:
        raise HTTPException(status_code=404, detail="Bucket list item not found")
    return BucketItemResponse(item=item.as_dict())


@router.delete("/user/bucket-list/{item_id}", status_code=204)
def delete_bucket_item(
    item_id: str,
    user: AuthUser = Depends(get_current_user),
    store: BucketListStore = Depends(get_store),
):
    if not store.delete_bucket_item(user.id, item_id):
        raise HTTPException(status_code=404, detail="Bucket list item not found")


@router.get("/user/stats", response_model=StatsResponse)
def user_stats(
    user: AuthUser = Depends(get_current_user),
    store: BucketListStore = Depends(get_store),
):
    return _status_counts([item.status for item in store.list_bucket_items(user.id)])


@router.post("/user/share-images", response_model=ShareImagesResponse)
def create_share_images(
    payload: Optional[ShareImagesRequest] = None,
    user: AuthUser = Depends(get_current_user),
    store: BucketListStore = Depends(get_store),
    renderer: RenderService = Depends(get_renderer),
    style: ShareStyle = Depends(get_share_style),
):
    """
    Render one collage per social format from the user's activity photos.
    Partial success is returned with an ``errors`` map.
    """
    settings = get_settings()
    formats = None
    if payload and payload.formats:
        try:
            formats = {key: get_format(key) for key in payload.formats}
        except ConfigurationError as e:
            raise HTTPException(status_code=400, detail=str(e))

    activities = store.list_share_activities(user.id)
    counts = _status_counts([activity.status for activity in activities])
    stats = ShareStats(total=counts.total, completed=counts.completed)
    request = CompositionRequest(
        activities=activities,
        stats=stats,
        branding_name=_display_name(store.get_profile(user.id), user),
        owner_id=user.id,
        share_id=str(int(time.time() * 1000)),
    )

    try:
        share_set = generate_share_set(
            request,
            renderer,
            formats=formats,
            timeout_seconds=settings.render_timeout_seconds,
            max_workers=settings.render_max_workers,
            style=style,
            asset_folder=settings.share_asset_folder,
        )
    except NoValidImagesError as e:
        raise HTTPException(status_code=422, detail=e.message)
    except AllFormatsFailedError as e:
        logger.error("Share images failed for %s: %s", user.id, e.errors)
        raise HTTPException(
            status_code=502,
            detail={
                "message": "No shareable image could be generated",
                "errors": e.errors,
            },
        )

    return ShareImagesResponse(
        images={key: image.as_dict() for key, image in share_set.images.items()},
        errors=share_set.errors,
        partial=share_set.partial,
        stats={
            "total": stats.total,
            "completed": stats.completed,
            "completion_rate": stats.completion_rate,
        },
    )


@router.post("/user/share-links", response_model=ShareLinkResponse, status_code=201)
def create_share_link(
    payload: CreateShareLinkRequest,
    user: AuthUser = Depends(get_current_user),
    store: BucketListStore = Depends(get_store),
):
    settings = get_settings()
    counts = _status_counts([item.status for item in store.list_bucket_items(user.id)])
    try:
        link = build_share_link(
            store,
            user_id=user.id,
            platform=payload.platform,
            image_url=payload.image_url,
            stats={
                "total": counts.total,
                "completed": counts.completed,
                "completion_rate": counts.completion_rate,
            },
            ttl_days=settings.share_link_ttl_days,
        )
    except ShareTokenError as e:
        logger.error("Share link creation failed: %s", e)
        raise HTTPException(status_code=503, detail="Could not create a share link")
    link = store.create_share_link(link)

    share_url = f"{settings.api_base_url.rstrip('/')}/share/{link.share_token}"
    text = (
        f"🌟 {counts.completed}/{counts.total} bucket list experiences completed "
        f"({counts.completion_rate}%)"
    )
    return ShareLinkResponse(
        share_token=link.share_token,
        share_url=share_url,
        platform=link.platform,
        expires_at=link.expires_at,
        social_links=build_social_links(share_url, text),
    )


@public_router.get("/share/{token}", response_class=HTMLResponse)
def share_page(
    token: str,
    user_agent: Optional[str] = Header(None),
    store: BucketListStore = Depends(get_store),
):
    settings = get_settings()
    link = store.get_share_link(token)
    if not link:
        logger.info("Share token not found: %s", token)
        return HTMLResponse(render_missing_page(settings.frontend_url), status_code=404)

    now = datetime.now(timezone.utc)
    if link.is_expired(now):
        logger.info("Share token expired: %s", token)
        return HTMLResponse(
            render_expired_page(settings.frontend_url, settings.share_link_ttl_days),
            status_code=410,
        )

    for_bot = is_bot(user_agent)
    try:
        link = store.record_share_link_access(link, is_click=not for_bot, at=now)
    except Exception as e:
        logger.warning("Share link access not recorded for %s: %s", token, e)
    share_url = f"{settings.api_base_url.rstrip('/')}/share/{token}"
    return HTMLResponse(
        render_share_page(
            link,
            store.get_profile(link.user_id),
            share_url,
            for_bot=for_bot,
            frontend_url=settings.frontend_url,
        )
    )
