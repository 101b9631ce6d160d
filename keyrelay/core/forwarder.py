"""
Forwarding orchestrator: drives one inbound request across the key pool
"""

import asyncio
import json
import time
from typing import Any, Dict, List

from .errors import TransportFailure
from .failure_classifier import FailureClassifier
from .key_pool import is_eligible, mask_key
from .rotation import RotationController
from ..models.data_classes import AttemptRecord, ForwardResult
from ..models.enums import AttemptOutcome
from ..utils.activity_log import ActivityLog, LogEntry
from ..utils.logging import setup_logging

logger = setup_logging()

USER_PREVIEW_CHARS = 1000
REPLY_PREVIEW_CHARS = 2000
EXHAUSTED_MESSAGE = "All API keys exhausted or invalid. Please wait or add more keys."
DEFAULT_MESSAGES = [{"role": "user", "content": "Hello"}]


def shape_payload(payload: Dict[str, Any], default_model: str) -> Dict[str, Any]:
    """Fill a missing model and conversation without touching anything else"""
    shaped = dict(payload)
    if not shaped.get("model"):
        shaped["model"] = default_model
    if shaped.get("messages") is None:
        shaped["messages"] = [dict(m) for m in DEFAULT_MESSAGES]
    return shaped


def last_user_message(payload: Dict[str, Any], limit: int = USER_PREVIEW_CHARS) -> str:
    """Truncated content of the latest user message, for operator visibility"""
    messages = payload.get("messages")
    if not isinstance(messages, list):
        return ""

    for message in reversed(messages):
        if not isinstance(message, dict) or message.get("role") != "user":
            continue
        content = message.get("content")
        if content is None:
            return ""
        if isinstance(content, list):
            # Multi-part content: keep only the text parts
            content = " ".join(
                str(part.get("text", "")) for part in content
                if isinstance(part, dict) and part.get("type") == "text"
            )
        return str(content)[:limit]
    return ""


class ForwardingOrchestrator:
    """Forwards one payload, rotating keys on 429/401/403 and transport failures.

    The loop is bounded by the pool size at the start of the request; the
    active key is re-read on every attempt because rotation state is shared
    with concurrently forwarded requests.
    """

    def __init__(self, rotation: RotationController, client, activity_log: ActivityLog,
                 default_model: str, rate_limit_pause: bool = True,
                 max_rate_limit_pause_ms: int = 1000, success_cooldown_ms: int = 0):
        self.rotation = rotation
        self.client = client
        self.activity_log = activity_log
        self.default_model = default_model
        self.rate_limit_pause = rate_limit_pause
        self.max_rate_limit_pause_ms = max_rate_limit_pause_ms
        self.success_cooldown_ms = success_cooldown_ms

    async def forward(self, payload: Dict[str, Any]) -> ForwardResult:
        start = time.monotonic()
        body = shape_payload(payload, self.default_model)
        user_preview = last_user_message(body)
        attempts: List[AttemptRecord] = []

        pool = self.rotation.pool
        max_attempts = len(pool)

        for attempt in range(1, max_attempts + 1):
            if len(pool) == 0:
                break

            credential = self.rotation.active()
            key_index = self.rotation.cursor + 1

            if not is_eligible(credential, pool.clock()):
                attempts.append(AttemptRecord(attempt, key_index, AttemptOutcome.SKIPPED))
                self.rotation.advance()
                continue

            try:
                response = await self.client.post_chat_completion(credential.value, body)
            except TransportFailure as e:
                logger.warning("Transport failure, rotating",
                               attempt=attempt, key=mask_key(credential.value),
                               key_index=key_index, error=str(e))
                attempts.append(AttemptRecord(attempt, key_index, AttemptOutcome.TRANSPORT_ERROR))
                self.rotation.advance()
                continue

            outcome = FailureClassifier.classify_status(response.status)
            strategy = FailureClassifier.get_strategy(outcome)

            if strategy.terminal:
                attempts.append(AttemptRecord(attempt, key_index, outcome, response.status))
                return self._complete(credential, key_index, response, user_preview,
                                      start, attempts)

            cooldown = None
            if strategy.cool_down:
                cooldown = FailureClassifier.cooldown_ms(response.retry_after, pool.clock())
                self.rotation.mark_rate_limited(credential, cooldown)
            if strategy.mark_dead:
                self.rotation.mark_dead(credential)

            attempts.append(AttemptRecord(attempt, key_index, outcome, response.status, cooldown))
            logger.info("Attempt rejected, rotating", attempt=attempt, key_index=key_index,
                        status=response.status, outcome=outcome.value)
            self.rotation.advance()

            if cooldown and self.rate_limit_pause and attempt < max_attempts:
                await asyncio.sleep(min(cooldown, self.max_rate_limit_pause_ms) / 1000)

        return self._exhausted(user_preview, start, attempts)

    def _complete(self, credential, key_index: int, response, user_preview: str,
                  start: float, attempts: List[AttemptRecord]) -> ForwardResult:
        latency_ms = int((time.monotonic() - start) * 1000)

        self.rotation.pool.record_success(credential)
        if self.success_cooldown_ms > 0:
            self.rotation.pool.mark_cooldown(credential, self.success_cooldown_ms)

        self.activity_log.append(LogEntry.create(
            key_index=key_index,
            user=user_preview,
            reply=response.body.decode("utf-8", errors="replace")[:REPLY_PREVIEW_CHARS],
            latency_ms=latency_ms,
            status=response.status
        ))

        logger.info("Request forwarded", key_index=key_index, status=response.status,
                    latency_ms=latency_ms, attempts=len(attempts))

        return ForwardResult(
            status=response.status,
            content_type=response.content_type,
            body=response.body,
            key_index=key_index,
            latency_ms=latency_ms,
            attempts=attempts
        )

    def _exhausted(self, user_preview: str, start: float,
                   attempts: List[AttemptRecord]) -> ForwardResult:
        latency_ms = int((time.monotonic() - start) * 1000)

        self.activity_log.append(LogEntry.create(
            key_index=0,
            user=user_preview,
            reply="",
            latency_ms=latency_ms,
            status=429
        ))

        logger.error("All keys exhausted", attempts=len(attempts),
                     total_keys=len(self.rotation.pool), latency_ms=latency_ms)

        return ForwardResult(
            status=429,
            content_type="application/json",
            body=json.dumps({"error": EXHAUSTED_MESSAGE}).encode("utf-8"),
            key_index=0,
            latency_ms=latency_ms,
            exhausted=True,
            attempts=attempts
        )
