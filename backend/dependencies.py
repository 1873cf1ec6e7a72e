"""
Dependency wiring for the FastAPI app.

Each hosted-service client is built once from settings and handed to routes
through ``Depends``; tests swap them via ``app.dependency_overrides``.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header, HTTPException

from backend.auth import (
    AuthUser,
    AuthVerifier,
    InMemoryAuthVerifier,
    SupabaseAuthVerifier,
    bearer_token,
)
from backend.config import get_settings
from backend.records import (
    BucketListStore,
    InMemoryBucketListStore,
    SupabaseBucketListStore,
)
from backend.render import CloudinaryRenderService, InMemoryRenderService
from share_pipeline.overlays import ShareStyle
from share_pipeline.share_set import RenderService

logger = logging.getLogger(__name__)


def _use_supabase() -> bool:
    settings = get_settings()
    return bool(
        not settings.use_in_memory_backends
        and settings.supabase_url
        and settings.supabase_service_role_key
    )


@lru_cache(maxsize=1)
def _supabase_client():
    from supabase import create_client

    settings = get_settings()
    return create_client(settings.supabase_url, settings.supabase_service_role_key)


@lru_cache(maxsize=1)
def get_store() -> BucketListStore:
    settings = get_settings()
    if _use_supabase():
        return SupabaseBucketListStore(
            _supabase_client(), asset_folder=settings.share_asset_folder
        )
    logger.warning("Supabase not configured; using in-memory record store")
    return InMemoryBucketListStore(asset_folder=settings.share_asset_folder)


@lru_cache(maxsize=1)
def get_auth_verifier() -> AuthVerifier:
    if _use_supabase():
        return SupabaseAuthVerifier(_supabase_client())
    return InMemoryAuthVerifier()


@lru_cache(maxsize=1)
def get_renderer() -> RenderService:
    settings = get_settings()
    band = f"{settings.share_asset_folder}/footer_band"
    if settings.use_in_memory_backends:
        logger.warning("Using in-memory renderer; share image URLs are not real")
        return InMemoryRenderService(band_public_id=band)
    if (
        not settings.cloudinary_cloud_name
        or not settings.cloudinary_api_key
        or not settings.cloudinary_api_secret
    ):
        logger.error("Cloudinary credentials missing; share images unavailable")
        raise HTTPException(
            status_code=503, detail="Share image rendering is not configured"
        )
    return CloudinaryRenderService(
        cloud_name=settings.cloudinary_cloud_name,
        api_key=settings.cloudinary_api_key,
        api_secret=settings.cloudinary_api_secret,
        band_public_id=band,
        timeout=settings.render_timeout_seconds,
    )


def get_share_style() -> ShareStyle:
    settings = get_settings()
    return ShareStyle(
        logo_ref=settings.logo_public_id,
        logo_width=settings.logo_width,
        logo_opacity=settings.logo_opacity,
        footer_opacity=settings.footer_opacity,
        cta_text=settings.share_cta_text,
    )


def get_current_user(
    authorization: Optional[str] = Header(None),
    verifier: AuthVerifier = Depends(get_auth_verifier),
) -> AuthUser:
    token = bearer_token(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Access token required")
    user = verifier.verify(token)
    if not user:
        raise HTTPException(status_code=403, detail="Invalid or expired token")
    return user
