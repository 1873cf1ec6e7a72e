"""
Configuration and settings for the bucket list backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="info")
    cors_origins: list[str] = Field(default=["http://localhost:3000"])

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    # Supabase (records + auth)
    supabase_url: Optional[str] = Field(default=None)
    supabase_service_role_key: Optional[str] = Field(default=None)

    # Cloudinary (share image rendering)
    cloudinary_cloud_name: Optional[str] = Field(default=None)
    cloudinary_api_key: Optional[str] = Field(default=None)
    cloudinary_api_secret: Optional[str] = Field(default=None)
    render_timeout_seconds: float = Field(default=30.0)
    render_max_workers: int = Field(default=4)

    # Share image branding; the logo and `{share_asset_folder}/footer_band`
    # assets must exist in the Cloudinary account.
    share_asset_folder: str = Field(default="ma-bucket-liste")
    logo_public_id: str = Field(default="ma-bucket-liste/logo_xdetr5")
    logo_width: int = Field(default=120)
    logo_opacity: int = Field(default=85, ge=0, le=100)
    footer_opacity: int = Field(default=70, ge=0, le=100)
    share_cta_text: str = Field(default="mabucketliste.fr")

    # Share links
    share_link_ttl_days: int = Field(default=30)
    frontend_url: str = Field(default="https://ma-bucket-liste.vercel.app")
    api_base_url: str = Field(default="http://localhost:8000")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
