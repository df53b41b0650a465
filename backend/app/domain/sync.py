"""
Sync Domain Models

SyncProgress is the snapshot a polling client reads while a sync runs.
SyncSummary is what a finished run returns to its caller.

Author: TM3
Date: 2026-02-10
"""
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, Field, ConfigDict


class SyncMode(str, Enum):
    SMART = "smart"
    FULL = "full"


class SyncPhase(str, Enum):
    LISTING = "listing"
    FILTERING = "filtering"
    FETCHING_DETAILS = "fetching_details"
    SAVING = "saving"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def order(self) -> int:
        return _PHASE_ORDER[self]


# error is terminal and reachable from any phase
_PHASE_ORDER = {
    SyncPhase.LISTING: 0,
    SyncPhase.FILTERING: 1,
    SyncPhase.FETCHING_DETAILS: 2,
    SyncPhase.SAVING: 3,
    SyncPhase.COMPLETED: 4,
    SyncPhase.ERROR: 5,
}


class SyncProgress(BaseModel):
    """Progress snapshot of one sync run (appConfig/syncProgress)"""

    run_id: str = Field(..., alias="runId")
    mode: SyncMode
    is_running: bool = Field(True, alias="isRunning")
    phase: SyncPhase = SyncPhase.LISTING
    current_step: str = Field("", alias="currentStep")
    current_order: int = Field(0, alias="currentOrder")
    total_orders: int = Field(0, alias="totalOrders")
    percentage: int = 0
    error: Optional[str] = None
    started_at: str = Field(..., alias="startedAt")
    updated_at: str = Field(..., alias="updatedAt")
    finished_at: Optional[str] = Field(None, alias="finishedAt")

    model_config = ConfigDict(populate_by_name=True)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


@dataclass
class SyncSummary:
    run_id: str
    mode: str
    total: int = 0
    new: int = 0
    existing: int = 0
    changed: int = 0
    skipped: int = 0
    created: int = 0
    updated: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)
    date_range: Dict[str, Optional[str]] = field(default_factory=dict)
    duration_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
