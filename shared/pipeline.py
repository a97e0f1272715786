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
Approval pipeline shown to developers for each submitted app.

The stored status only has three values; the three pipeline stages
(Pending, Reviewing, Published) are a presentation of that status.
"""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Dict, FrozenSet, List, Optional

from shared.types import AppStatus


class StageState(StrEnum):
    COMPLETED = "completed"
    CURRENT = "current"
    UPCOMING = "upcoming"


@dataclass(frozen=True)
class Stage:
    id: str
    label: str


STAGES: List[Stage] = [
    Stage("pending", "Pending"),
    Stage("reviewing", "Reviewing"),
    Stage("published", "Published"),
]

REJECTED_HEADLINE = "Application Rejected"
REJECTED_HINT = "Check admin feedback for details"

STATUS_LABELS: Dict[str, str] = {
    AppStatus.PENDING: "Pending",
    AppStatus.APPROVED: "Approved",
    AppStatus.REJECTED: "Rejected",
}

_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    AppStatus.PENDING: frozenset({AppStatus.APPROVED, AppStatus.REJECTED}),
    AppStatus.APPROVED: frozenset({AppStatus.REJECTED}),
    AppStatus.REJECTED: frozenset({AppStatus.APPROVED}),
}


@dataclass
class StageView:
    id: str
    label: str
    state: StageState
    # Whether the connector drawn after this stage is filled. None for the last stage.
    connector_filled: Optional[bool] = None


@dataclass
class PipelineView:
    status: str
    rejected: bool
    stages: List[StageView] = field(default_factory=list)
    progress_percent: float = 0.0
    headline: Optional[str] = None
    hint: Optional[str] = None
    last_updated: Optional[float] = None

    def as_dict(self) -> dict:
        return {
            "status": self.status,
            "rejected": self.rejected,
            "stages": [
                {
                    "id": stage.id,
                    "label": stage.label,
                    "state": stage.state.value,
                    "connector_filled": stage.connector_filled,
                }
                for stage in self.stages
            ],
            "progress_percent": self.progress_percent,
            "headline": self.headline,
            "hint": self.hint,
            "last_updated": self.last_updated,
        }


def active_stage_index(status: str) -> int:
    """Maps a stored status onto the index of the active stage (-1 when rejected)."""
    if status == AppStatus.APPROVED:
        return 2
    if status == AppStatus.REJECTED:
        return -1
    return 0


def build_pipeline(status: str, last_updated: Optional[float] = None) -> PipelineView:
    if status == AppStatus.REJECTED:
        return PipelineView(
            status=status,
            rejected=True,
            headline=REJECTED_HEADLINE,
            hint=REJECTED_HINT,
            last_updated=last_updated,
        )

    active = active_stage_index(status)
    approved = status == AppStatus.APPROVED
    stages: List[StageView] = []
    filled = 0
    for index, stage in enumerate(STAGES):
        if index < active or (index == active and approved):
            state = StageState.COMPLETED
        elif index == active:
            state = StageState.CURRENT
        else:
            state = StageState.UPCOMING

        connector = None
        if index < len(STAGES) - 1:
            connector = state == StageState.COMPLETED or (
                state == StageState.CURRENT and index == 0
            )
            if connector:
                filled += 1
        stages.append(StageView(stage.id, stage.label, state, connector))

    connectors = len(STAGES) - 1
    return PipelineView(
        status=status,
        rejected=False,
        stages=stages,
        progress_percent=round(filled / connectors, 4),
        last_updated=last_updated,
    )


def status_label(status: str) -> str:
    return STATUS_LABELS.get(status, str(status).capitalize())


def allowed_transitions(status: str) -> FrozenSet[str]:
    return _TRANSITIONS.get(status, frozenset())


def can_transition(current: str, target: str) -> bool:
    if current == target:
        return True
    return target in allowed_transitions(current)


def check_transition(current: str, target: str) -> None:
    """
    Raises ValueError for a review decision that is not allowed from `current`.

    Setting the status it already has is accepted as a no-op.
    """
    if target not in STATUS_LABELS:
        raise ValueError(f"Unknown status: {target}")
    if not can_transition(current, target):
        raise ValueError(f"Cannot change status from {current} to {target}")
