"""
Application lifespan management for FastAPI
"""

import time
from contextlib import asynccontextmanager
from fastapi import FastAPI

from ..core.config import ConfigManager, ProxyConfig
from ..core.key_pool import KeyPool
from ..core.rotation import RotationController
from ..core.queues import AdmissionQueue
from ..core.upstream_client import UpstreamClient
from ..core.forwarder import ForwardingOrchestrator
from ..utils.activity_log import ActivityLog
from ..utils.logging import setup_logging

logger = setup_logging()

# Global components - initialized during lifespan
config = None
key_pool = None
rotation = None
admission_queue = None
upstream_client = None
orchestrator = None
activity_log = None
started_at = time.monotonic()


def init_components(proxy_config: ProxyConfig, client=None):
    """Wire the rotation engine from a configuration into the module globals"""
    global config, key_pool, rotation, admission_queue, upstream_client, orchestrator, activity_log
    global started_at

    config = proxy_config
    key_pool = KeyPool(proxy_config.keys)
    rotation = RotationController(key_pool)
    admission_queue = AdmissionQueue(
        max_concurrent=proxy_config.max_concurrent,
        min_interval_ms=proxy_config.min_interval_ms
    )
    activity_log = ActivityLog(capacity=proxy_config.log_capacity)
    upstream_client = client or UpstreamClient(
        endpoint=proxy_config.upstream_url,
        http_referer=proxy_config.http_referer,
        x_title=proxy_config.x_title,
        timeout_seconds=proxy_config.attempt_timeout_seconds
    )
    orchestrator = ForwardingOrchestrator(
        rotation,
        upstream_client,
        activity_log,
        default_model=proxy_config.default_model,
        rate_limit_pause=proxy_config.rate_limit_pause,
        max_rate_limit_pause_ms=proxy_config.max_rate_limit_pause_ms,
        success_cooldown_ms=proxy_config.success_cooldown_ms
    )
    started_at = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""

    # Startup
    logger.info("Starting keyrelay application")

    try:
        config_manager = ConfigManager()
        proxy_config = await config_manager.load_config()
        init_components(proxy_config)

        if len(key_pool) == 0:
            logger.warning("No API keys configured, every request will be rejected")

        await upstream_client.start()
        logger.info("keyrelay application started successfully",
                    key_count=len(key_pool),
                    max_concurrent=admission_queue.max_concurrent,
                    min_interval_ms=admission_queue.min_interval_ms)

    except Exception as e:
        logger.error("Failed to start application", error=str(e))
        raise

    yield

    # Shutdown
    logger.info("Shutting down keyrelay application")

    try:
        if upstream_client:
            await upstream_client.stop()

        logger.info("keyrelay application shutdown complete")
    except Exception as e:
        logger.error("Error during shutdown", error=str(e))


def get_config() -> ProxyConfig:
    """Get the active proxy configuration"""
    return config


def get_rotation() -> RotationController:
    """Get the global rotation controller"""
    return rotation


def get_admission_queue() -> AdmissionQueue:
    """Get the global admission queue"""
    return admission_queue


def get_orchestrator() -> ForwardingOrchestrator:
    """Get the global forwarding orchestrator"""
    return orchestrator


def get_activity_log() -> ActivityLog:
    """Get the global activity log"""
    return activity_log


def get_uptime_minutes() -> int:
    return int((time.monotonic() - started_at) // 60)
