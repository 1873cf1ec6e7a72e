"""
Render service adapters for share images: Cloudinary and an in-memory double.
"""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

import requests

from share_pipeline.errors import RenderServiceError
from share_pipeline.overlays import LayerRole, OverlayDescriptor
from share_pipeline.share_set import RenderJob, RenderResult

logger = logging.getLogger(__name__)

CLOUDINARY_UPLOAD_URL = "https://api.cloudinary.com/v1_1/{cloud_name}/image/upload"
REQUEST_TIMEOUT = 30  # seconds

# 1x1 transparent PNG used as the base canvas; the incoming transformation
# resizes it and stacks every layer on top.
BLANK_PNG_DATA_URI = (
    "data:image/png;base64,"
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)


def layer_id(public_id: str) -> str:
    """Cloudinary addresses layers with ':' instead of '/' between folders."""
    return public_id.replace("/", ":")


def _wire_text(escaped: str) -> str:
    # Commas and slashes must survive the transformation parser.
    return escaped.replace("%2C", "%252C").replace("%2F", "%252F")


def _apply(overlay: OverlayDescriptor) -> str:
    return f"fl_layer_apply,g_{overlay.anchor.value},x_{overlay.x},y_{overlay.y}"


def serialize_overlay(overlay: OverlayDescriptor, band_public_id: str) -> List[str]:
    """Convert one descriptor into its Cloudinary transformation components."""
    if overlay.role is LayerRole.PHOTO:
        layer = (
            f"l_{layer_id(overlay.asset_ref)},c_{overlay.crop},"
            f"g_{overlay.crop_gravity},w_{overlay.width},h_{overlay.height}"
        )
    elif overlay.role is LayerRole.LOGO:
        layer = f"l_{layer_id(overlay.asset_ref)},w_{overlay.width},o_{overlay.opacity}"
    elif overlay.role is LayerRole.FOOTER_BAND:
        layer = (
            f"l_{layer_id(band_public_id)},c_scale,w_{overlay.width},h_{overlay.height},"
            f"e_colorize:100,co_{overlay.color},o_{overlay.opacity}"
        )
    else:
        text = overlay.text
        style = f"{text.font_family}_{text.font_size}"
        if text.font_weight:
            style += f"_{text.font_weight}"
        layer = f"l_text:{style}:{_wire_text(text.text)},co_{overlay.color}"
    return [layer, _apply(overlay)]


def build_transformation(job: RenderJob, band_public_id: str) -> str:
    """Serialize a render job to a Cloudinary chained transformation string."""
    components = [
        f"c_fill,w_{job.canvas.width},h_{job.canvas.height},b_{job.canvas.background}"
    ]
    for overlay in job.overlays:
        components.extend(serialize_overlay(overlay, band_public_id))
    components.append(f"q_{job.quality}")
    return "/".join(components)


def sign_params(params: Dict[str, object], api_secret: str) -> str:
    """Cloudinary API signature: SHA-1 over sorted, non-empty params + secret."""
    to_sign = "&".join(
        f"{key}={params[key]}"
        for key in sorted(params)
        if params[key] is not None and params[key] != ""
    )
    return hashlib.sha1((to_sign + api_secret).encode("utf-8")).hexdigest()


def _context_value(value: str) -> str:
    return value.replace("|", "\\|").replace("=", "\\=")


@dataclass
class InMemoryRenderService:
    """Test double that records jobs and returns deterministic URLs."""

    base_url: str = "https://example.test/render"
    band_public_id: str = "ma-bucket-liste/footer_band"
    failing_formats: Set[str] = field(default_factory=set)
    delay_seconds: float = 0.0
    submitted: List[RenderJob] = field(default_factory=list)
    transformations: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        self._lock = threading.Lock()

    def render(self, job: RenderJob) -> RenderResult:
        transformation = build_transformation(job, self.band_public_id)
        with self._lock:
            self.submitted.append(job)
            self.transformations[job.format_key] = transformation
        if self.delay_seconds:
            time.sleep(self.delay_seconds)
        if job.format_key in self.failing_formats:
            raise RenderServiceError(
                "render_failed", f"{job.format_key} rejected", job.format_key
            )
        return RenderResult(
            url=f"{self.base_url}/{job.public_id}.{job.output_format}",
            public_id=job.public_id,
        )

    def reset(self) -> None:
        with self._lock:
            self.submitted.clear()
            self.transformations.clear()


@dataclass
class CloudinaryRenderService:
    """
    Renders share images by uploading a blank canvas with an incoming
    transformation that composites every layer.

    The footer band is drawn by scaling and colorizing ``band_public_id``, so
    that asset (any small opaque image, e.g. a 1x1 PNG uploaded as
    ``{share_asset_folder}/footer_band``) must exist in the Cloudinary account,
    alongside the logo asset.
    """

    cloud_name: str
    api_key: str
    api_secret: str
    band_public_id: str = "ma-bucket-liste/footer_band"
    timeout: float = REQUEST_TIMEOUT

    def __post_init__(self):
        self._session = requests.Session()

    @property
    def upload_url(self) -> str:
        return CLOUDINARY_UPLOAD_URL.format(cloud_name=self.cloud_name)

    def build_upload_params(
        self, job: RenderJob, timestamp: Optional[int] = None
    ) -> Dict[str, object]:
        params: Dict[str, object] = {
            "public_id": job.public_id,
            "timestamp": timestamp if timestamp is not None else int(time.time()),
            "transformation": build_transformation(job, self.band_public_id),
            "format": job.output_format,
        }
        if job.caption:
            params["context"] = f"caption={_context_value(job.caption)}"
        params["signature"] = sign_params(params, self.api_secret)
        params["api_key"] = self.api_key
        return params

    def render(self, job: RenderJob) -> RenderResult:
        data = self.build_upload_params(job)
        data["file"] = BLANK_PNG_DATA_URI
        logger.info("[%s] Uploading to Cloudinary as %s", job.format_key.upper(), job.public_id)
        try:
            response = self._session.post(self.upload_url, data=data, timeout=self.timeout)
        except requests.RequestException as e:
            raise RenderServiceError("network_error", str(e), job.format_key) from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if response.status_code != 200:
            message = (payload.get("error") or {}).get("message") or response.reason
            raise RenderServiceError(
                f"http_{response.status_code}", message or "upload failed", job.format_key
            )
        url = payload.get("secure_url") or payload.get("url")
        if not url:
            raise RenderServiceError(
                "invalid_response", "upload response has no URL", job.format_key
            )
        return RenderResult(url=url, public_id=payload.get("public_id", job.public_id))
