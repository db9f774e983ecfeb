"""
Unit tests for leaf-inserted notifications.
"""

from datetime import datetime, timezone

import pytest

from margay.merkle.events import LeafEventDispatcher, LeafInserted
from margay.merkle.hashing import to_digest
from margay.merkle.tree import IncrementalMerkleTree


def make_event(index: int = 0) -> LeafInserted:
    return LeafInserted(to_digest(index), index, datetime.now(timezone.utc))


class TestLeafInserted:
    """Test the LeafInserted record."""

    def test_to_dict(self):
        timestamp = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        event = LeafInserted(to_digest(12), 0, timestamp)

        assert event.to_dict() == {
            "leaf": to_digest(12).hex(),
            "leaf_index": 0,
            "timestamp": "2026-01-02T03:04:05+00:00",
        }

    def test_is_immutable(self):
        event = make_event()
        with pytest.raises(AttributeError):
            event.leaf_index = 5


class TestLeafEventDispatcher:
    """Test observer registration and delivery."""

    def test_dispatch_in_registration_order(self):
        dispatcher = LeafEventDispatcher()
        calls = []
        dispatcher.subscribe(lambda e: calls.append(("first", e.leaf_index)))
        dispatcher.subscribe(lambda e: calls.append(("second", e.leaf_index)))

        dispatcher.dispatch(make_event(3))
        assert calls == [("first", 3), ("second", 3)]

    def test_duplicate_subscription_ignored(self):
        dispatcher = LeafEventDispatcher()
        received = []
        dispatcher.subscribe(received.append)
        dispatcher.subscribe(received.append)

        assert dispatcher.observer_count == 1
        dispatcher.dispatch(make_event())
        assert len(received) == 1

    def test_unsubscribe(self):
        dispatcher = LeafEventDispatcher()
        received = []
        dispatcher.subscribe(received.append)
        dispatcher.unsubscribe(received.append)
        dispatcher.unsubscribe(received.append)

        dispatcher.dispatch(make_event())
        assert received == []
        assert dispatcher.observer_count == 0

    def test_non_callable_rejected(self):
        with pytest.raises(TypeError):
            LeafEventDispatcher().subscribe("not callable")

    def test_failing_observer_does_not_stop_others(self):
        dispatcher = LeafEventDispatcher()
        received = []

        def broken(event):
            raise RuntimeError("observer bug")

        dispatcher.subscribe(broken)
        dispatcher.subscribe(received.append)

        dispatcher.dispatch_all([make_event(0), make_event(1)])
        assert [event.leaf_index for event in received] == [0, 1]


class TestTreeNotifications:
    """Test notifications emitted by the tree."""

    def test_one_event_per_leaf_in_order(self):
        tree = IncrementalMerkleTree(depth=8)
        events = []
        tree.subscribe(events.append)

        tree.insert(12)
        tree.insert(34)
        tree.insert(123)

        assert len(events) == 3
        assert [event.leaf_index for event in events] == [0, 1, 2]
        assert events[2].leaf == to_digest(123)
        assert events[2].leaf_index == 2
        assert events[2].timestamp.tzinfo is not None

    def test_batch_emits_events_in_order(self):
        tree = IncrementalMerkleTree(depth=8)
        events = []
        tree.subscribe(events.append)

        tree.insert_many([5, 6, 7])
        assert [event.leaf for event in events] == [to_digest(5), to_digest(6), to_digest(7)]

    def test_observer_failure_does_not_affect_tree(self):
        tree = IncrementalMerkleTree(depth=4)

        def broken(event):
            raise ValueError("observer bug")

        tree.subscribe(broken)
        index, root = tree.insert(1)

        assert index == 0
        assert tree.latest_root() == root
        assert tree.next_index == 1

    def test_observer_sees_committed_state(self):
        tree = IncrementalMerkleTree(depth=4)
        seen = []
        tree.subscribe(lambda event: seen.append((tree.next_index, tree.latest_root())))

        _, root = tree.insert(1)
        assert seen == [(1, root)]

    def test_unsubscribed_observer_not_called(self):
        tree = IncrementalMerkleTree(depth=4)
        events = []
        tree.subscribe(events.append)
        tree.insert(1)
        tree.unsubscribe(events.append)
        tree.insert(2)
        assert len(events) == 1
