"""
Models package - Data structures and schemas for keyrelay
"""

from .enums import AttemptOutcome, LogOrder
from .data_classes import Credential, UpstreamResponse, AttemptRecord, ForwardResult
from .schemas import (
    AddKeyRequest, KeySnapshot, PoolStatus, QueueStats,
    StatusResponse, LogEntryModel, LogsResponse, CommandResponse
)

__all__ = [
    # Enums
    'AttemptOutcome',
    'LogOrder',

    # Data classes
    'Credential',
    'UpstreamResponse',
    'AttemptRecord',
    'ForwardResult',

    # Pydantic schemas
    'AddKeyRequest',
    'KeySnapshot',
    'PoolStatus',
    'QueueStats',
    'StatusResponse',
    'LogEntryModel',
    'LogsResponse',
    'CommandResponse'
]
