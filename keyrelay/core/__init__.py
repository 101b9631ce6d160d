"""
Core package - Key rotation engine for keyrelay
"""

from .config import ConfigManager, ProxyConfig
from .errors import InvalidPayload, PoolExhausted, TransportFailure
from .key_pool import KeyPool, mask_key, is_eligible, is_cooling_down
from .rotation import RotationController
from .queues import AdmissionQueue
from .upstream_client import UpstreamClient
from .failure_classifier import FailureClassifier
from .forwarder import ForwardingOrchestrator

__all__ = [
    'ConfigManager',
    'ProxyConfig',
    'InvalidPayload',
    'PoolExhausted',
    'TransportFailure',
    'KeyPool',
    'mask_key',
    'is_eligible',
    'is_cooling_down',
    'RotationController',
    'AdmissionQueue',
    'UpstreamClient',
    'FailureClassifier',
    'ForwardingOrchestrator'
]
