"""
Pydantic schemas for the status and command surface
"""

from typing import Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict


class AddKeyRequest(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    key: str = Field(..., min_length=1, description="Raw upstream API key to add to the pool")


class KeySnapshot(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    index: int = Field(..., description="1-based position in the rotation order")
    key: str = Field(..., description="Masked key value")
    active: bool
    dead: bool
    cooling_down: bool
    cooldown_remaining_ms: int
    use_count: int
    rate_limit_count: int
    added_at: str = Field(..., description="ISO-8601 UTC time the key joined the pool")


class PoolStatus(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    total_keys: int
    active_index: int = Field(..., description="1-based active position, 0 when the pool is empty")
    active_key: Optional[str] = None
    rotations: int
    dead_keys: int
    rate_limited_keys: int
    healthy_keys: int


class QueueStats(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    max_concurrent: int
    min_interval_ms: int
    queue_depth: int
    in_flight: int
    total_admitted: int


class StatusResponse(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    uptime_minutes: int
    pool: PoolStatus
    queue: QueueStats
    log_entries: int
    log_status_counts: Dict[int, int] = Field(default_factory=dict, description="Logged results per HTTP status")


class LogEntryModel(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    ts: str
    key_index: int
    user: str
    reply: str
    latency_ms: int
    status: int


class LogsResponse(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    total: int
    logs: List[LogEntryModel]


class CommandResponse(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    success: bool
    message: str
    pool: Optional[PoolStatus] = None
