"""
keyrelay - OpenAI-compatible reverse proxy with API key rotation

Holds a pool of upstream API keys, forwards each chat-completion request
with the active key, and rotates to another key when the active one is
rate limited or rejected. Pool state and recent activity are exposed
through an authenticated admin surface.
"""

__version__ = "1.0.0"
__description__ = "OpenAI-compatible reverse proxy with upstream API key rotation"

# Import main components for easy access
from .core.config import ConfigManager, ProxyConfig
from .core.key_pool import KeyPool, mask_key
from .core.rotation import RotationController
from .core.queues import AdmissionQueue
from .core.upstream_client import UpstreamClient
from .core.forwarder import ForwardingOrchestrator
from .core.errors import PoolExhausted, TransportFailure

from .models.data_classes import Credential, ForwardResult
from .utils.activity_log import ActivityLog, LogEntry

from .api.app import create_app

__all__ = [
    # Engine
    'ConfigManager',
    'ProxyConfig',
    'KeyPool',
    'mask_key',
    'RotationController',
    'AdmissionQueue',
    'UpstreamClient',
    'ForwardingOrchestrator',
    'PoolExhausted',
    'TransportFailure',

    # Models
    'Credential',
    'ForwardResult',

    # Activity history
    'ActivityLog',
    'LogEntry',

    # App factory
    'create_app'
]
