"""
Tests for the rotation controller's skip-search
"""

import pytest

from keyrelay.core.errors import PoolExhausted
from keyrelay.core.key_pool import KeyPool
from keyrelay.core.rotation import RotationController


def test_active_on_empty_pool_raises(clock):
    rotation = RotationController(KeyPool([], clock=clock))
    assert rotation.cursor is None
    with pytest.raises(PoolExhausted):
        rotation.active()


def test_advance_on_empty_pool_only_counts(clock):
    rotation = RotationController(KeyPool([], clock=clock))
    assert rotation.advance() is None
    assert rotation.rotations == 1


def test_advance_single_key_keeps_cursor(clock):
    rotation = RotationController(KeyPool(["sk-only-key-0001"], clock=clock))
    rotation.advance()
    rotation.advance()
    assert rotation.cursor == 0
    assert rotation.rotations == 2


def test_round_robin_visits_each_key_once(rotation, keys):
    seen = []
    for _ in range(len(keys)):
        rotation.advance()
        seen.append(rotation.active().value)

    assert sorted(seen) == sorted(keys)
    assert seen == [keys[1], keys[2], keys[0]]


def test_dead_key_is_never_selected_until_cleared(rotation, pool):
    rotation.mark_dead(pool[1])

    for _ in range(10):
        rotation.advance()
        assert rotation.active() is not pool[1]

    rotation.clear_transient_flags()
    rotation.advance()
    assert rotation.active() is pool[1]


def test_cooling_key_is_skipped_until_expiry(rotation, pool, clock):
    rotation.mark_rate_limited(pool[1], 500)
    assert pool[1].rate_limit_count == 1

    rotation.advance()
    assert rotation.cursor == 2

    clock.advance(500)
    rotation.advance()  # 2 -> 0
    rotation.advance()  # 0 -> 1, cooldown over
    assert rotation.cursor == 1


def test_all_ineligible_leaves_cursor_on_last_scanned(rotation, pool):
    for credential in pool.list():
        rotation.mark_dead(credential)

    rotation.advance()

    # N + 1 positions scanned from cursor 0 ends on position 1
    assert rotation.cursor == 1
    assert rotation.rotations == 1


def test_remove_keeps_active_key(rotation, pool, keys):
    rotation.advance()
    rotation.advance()
    assert rotation.active().value == keys[2]

    removed = rotation.remove(0)

    assert removed.value == keys[0]
    assert rotation.active().value == keys[2]
    assert rotation.cursor == 1


def test_remove_active_last_key_wraps(rotation, keys):
    rotation.advance()
    rotation.advance()
    rotation.remove(2)
    assert rotation.cursor == 0
    assert rotation.active().value == keys[0]


def test_status_counts(rotation, pool):
    rotation.mark_dead(pool[0])
    rotation.mark_rate_limited(pool[1], 1000)

    status = rotation.status()

    assert status["total_keys"] == 3
    assert status["active_index"] == 1
    assert status["active_key"] == "sk-or-...1111"
    assert status["dead_keys"] == 1
    assert status["rate_limited_keys"] == 1
    assert status["healthy_keys"] == 1
