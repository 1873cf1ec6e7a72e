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
Core value types shared between the share pipeline and the HTTP backend.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class ActivityStatus(Enum):
    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    @property
    def display_rank(self) -> int:
        """Sort key for share images: completed entries go first."""
        return 0 if self is ActivityStatus.COMPLETED else 1

    @classmethod
    def parse(cls, value: str | None) -> "ActivityStatus":
        try:
            return cls(value)
        except ValueError:
            return cls.PLANNED


@dataclass(frozen=True)
class ActivityImage:
    """One bucket-list entry eligible for a share collage."""

    image_ref: str
    title: str
    status: ActivityStatus = ActivityStatus.PLANNED
    activity_id: Optional[str] = None


@dataclass(frozen=True)
class ShareStats:
    total: int
    completed: int

    @property
    def completion_rate(self) -> int:
        if self.total <= 0:
            return 0
        # Half-up rounding, so 12.5% shows as 13%.
        return (200 * self.completed + self.total) // (2 * self.total)


@dataclass
class CompositionRequest:
    """Input to the share-set generator. Built per request, never stored."""

    activities: List[ActivityImage]
    stats: ShareStats
    branding_name: str
    owner_id: str = "anonymous"
    share_id: str = field(default="latest")
