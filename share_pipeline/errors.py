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

"""
Exceptions raised by the share-image pipeline.
"""

from __future__ import annotations

from typing import Dict, Optional


class SharePipelineError(Exception):
    pass


class ConfigurationError(SharePipelineError):
    """Unknown or malformed target format."""


class NoValidImagesError(SharePipelineError):
    def __init__(
        self, message: str = "Add photos to your activities to generate a share image."
    ):
        super().__init__(message)
        self.message = message


class RenderServiceError(SharePipelineError):
    """The remote renderer rejected or failed a job."""

    def __init__(self, code: str, message: str, format_key: Optional[str] = None):
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message
        self.format_key = format_key


class AllFormatsFailedError(SharePipelineError):
    def __init__(self, errors: Dict[str, str]):
        super().__init__(
            "No shareable image could be generated: "
            + "; ".join(f"{key}: {msg}" for key, msg in sorted(errors.items()))
        )
        self.errors = dict(errors)
