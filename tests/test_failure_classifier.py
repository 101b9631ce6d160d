"""
Tests for status classification and Retry-After handling
"""

from datetime import datetime, timezone

import pytest

from keyrelay.core.failure_classifier import FailureClassifier
from keyrelay.models.enums import AttemptOutcome


@pytest.mark.parametrize("status,outcome", [
    (200, AttemptOutcome.SUCCESS),
    (400, AttemptOutcome.SUCCESS),
    (404, AttemptOutcome.SUCCESS),
    (503, AttemptOutcome.SUCCESS),
    (401, AttemptOutcome.UNAUTHORIZED),
    (403, AttemptOutcome.UNAUTHORIZED),
    (429, AttemptOutcome.RATE_LIMITED),
])
def test_classify_status(status, outcome):
    assert FailureClassifier.classify_status(status) == outcome


def test_only_success_is_terminal():
    terminal = [o for o in AttemptOutcome if FailureClassifier.get_strategy(o).terminal]
    assert terminal == [AttemptOutcome.SUCCESS]
    assert FailureClassifier.get_strategy(AttemptOutcome.UNAUTHORIZED).mark_dead
    assert FailureClassifier.get_strategy(AttemptOutcome.RATE_LIMITED).cool_down


def test_parse_retry_after_seconds():
    assert FailureClassifier.parse_retry_after("3") == 3000
    assert FailureClassifier.parse_retry_after("1.5") == 1500
    assert FailureClassifier.parse_retry_after("0") is None
    assert FailureClassifier.parse_retry_after("") is None
    assert FailureClassifier.parse_retry_after(None) is None
    assert FailureClassifier.parse_retry_after("soon") is None
    assert FailureClassifier.parse_retry_after("inf") is None


def test_parse_retry_after_http_date():
    now = datetime(2015, 10, 21, 7, 27, 50, tzinfo=timezone.utc)
    assert FailureClassifier.parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT", now) == 10000


def test_cooldown_falls_back_to_jitter():
    values = {FailureClassifier.cooldown_ms(None) for _ in range(50)}
    assert all(250 <= v <= 750 for v in values)
    assert FailureClassifier.cooldown_ms("2") == 2000
