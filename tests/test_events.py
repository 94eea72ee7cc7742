"""Tests for the event emitter."""

from acp_secure_host.events import EventEmitter, EventKind


class TestEventEmitter:
    """Tests for EventEmitter."""

    def test_delivers_to_listeners_of_kind(self):
        """Should call only listeners of the emitted kind."""
        emitter = EventEmitter()
        updates, errors = [], []
        emitter.on(EventKind.UPDATE, updates.append)
        emitter.on(EventKind.ERROR, errors.append)

        emitter.emit(EventKind.UPDATE, {"a": 1})

        assert updates == [{"a": 1}]
        assert errors == []

    def test_delivers_once_per_occurrence(self):
        """Should call each listener once per emit."""
        emitter = EventEmitter()
        seen = []
        emitter.on(EventKind.STDERR, seen.append)

        emitter.emit(EventKind.STDERR, "a")
        emitter.emit(EventKind.STDERR, "b")

        assert seen == ["a", "b"]

    def test_off_unsubscribes(self):
        """Should stop delivering after off()."""
        emitter = EventEmitter()
        seen = []
        emitter.on(EventKind.PROCESS_CLOSED, seen.append)

        emitter.off(EventKind.PROCESS_CLOSED, seen.append)
        emitter.off(EventKind.PROCESS_CLOSED, seen.append)
        emitter.emit(EventKind.PROCESS_CLOSED, 0)

        assert seen == []

    def test_failing_listener_does_not_block_others(self):
        """Should keep delivering when a listener raises."""
        emitter = EventEmitter()
        seen = []

        def broken(payload):
            raise RuntimeError("listener bug")

        emitter.on(EventKind.SESSION_READY, broken)
        emitter.on(EventKind.SESSION_READY, seen.append)

        emitter.emit(EventKind.SESSION_READY, "sess")

        assert seen == ["sess"]
