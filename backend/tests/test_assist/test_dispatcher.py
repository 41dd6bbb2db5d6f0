"""Tests for event dispatch and session state transitions."""

from deepthink.assist.dispatcher import DEFAULT_ERROR_MESSAGE, dispatch_event
from deepthink.models import (
    DoneEvent,
    ErrorEvent,
    StageEvent,
    ThinkingCallbacks,
    ThinkingEvent,
    ThinkingSession,
)


def new_session() -> ThinkingSession:
    return ThinkingSession(question="How do I blink an LED?")


class TestTransitions:
    """Tests for each event type on an active session."""

    def test_thinking_notifies_without_mutation(self, callback_log):
        """Test a thinking event reaches on_thinking and changes nothing."""
        session = new_session()
        event = ThinkingEvent(thinking="Reading the datasheet", progress=10)

        assert dispatch_event(event, session, callback_log.options()) is True

        assert callback_log.calls == [("thinking", event)]
        assert session.completed_stages == 0
        assert session.is_active

    def test_stage_increments_completed(self, callback_log):
        """Test each stage event counts once."""
        session = new_session()
        options = callback_log.options()

        dispatch_event(StageEvent(stage="a", content="x"), session, options)
        dispatch_event(StageEvent(stage="b", content="y"), session, options)

        assert session.completed_stages == 2
        assert [e.stage for e in callback_log.of("stage")] == ["a", "b"]

    def test_error_deactivates_with_message(self, callback_log):
        """Test an error event ends the session and reports its message."""
        session = new_session()

        dispatch_event(ErrorEvent(error="model overloaded"), session, callback_log.options())

        assert not session.is_active
        assert callback_log.calls == [("error", "model overloaded")]

    def test_error_without_message_uses_default(self, callback_log):
        """Test a missing error message is replaced by the generic one."""
        session = new_session()

        dispatch_event(ErrorEvent(), session, callback_log.options())

        assert callback_log.of("error") == [DEFAULT_ERROR_MESSAGE]

    def test_done_delivers_snapshot(self, callback_log):
        """Test completion passes a detached copy of the session."""
        session = new_session()
        options = callback_log.options()
        dispatch_event(StageEvent(stage="a", total_stages=1), session, options)

        dispatch_event(DoneEvent(), session, options)

        [snapshot] = callback_log.of("complete")
        assert not session.is_active
        assert snapshot.session_id == session.session_id
        assert snapshot.completed_stages == 1
        assert not snapshot.is_active
        assert snapshot is not session

        session.completed_stages = 99
        assert snapshot.completed_stages == 1


class TestInactiveSession:
    """Events for a finished session are ignored."""

    def test_events_after_done_are_dropped(self, callback_log):
        """Test nothing is delivered or counted after the terminal event."""
        session = new_session()
        options = callback_log.options()
        dispatch_event(DoneEvent(), session, options)

        assert dispatch_event(StageEvent(stage="late"), session, options) is False
        assert dispatch_event(ThinkingEvent(), session, options) is False
        assert dispatch_event(ErrorEvent(error="late"), session, options) is False
        assert dispatch_event(DoneEvent(), session, options) is False

        assert callback_log.slots == ["complete"]
        assert session.completed_stages == 0

    def test_single_terminal_notification(self, callback_log):
        """Test at most one of on_error/on_complete fires."""
        session = new_session()
        options = callback_log.options()

        dispatch_event(ErrorEvent(error="first"), session, options)
        dispatch_event(DoneEvent(), session, options)

        assert callback_log.slots == ["error"]


class TestStageTotals:
    """Tests for how the stage total is learned."""

    def test_declared_total_is_adopted(self):
        """Test the first stage carrying a total sets it."""
        session = new_session()

        dispatch_event(StageEvent(stage="a", total_stages=5), session, ThinkingCallbacks())

        assert session.total_stages == 5
        assert session.completed_stages == 1
        assert session.progress_percent == 20

    def test_open_ended_total_grows(self):
        """Test stages without a declared total keep the total equal to the count."""
        session = new_session()
        callbacks = ThinkingCallbacks()

        for name in ("a", "b", "c"):
            dispatch_event(StageEvent(stage=name), session, callbacks)

        assert session.total_stages == 3
        assert session.progress_percent == 100

    def test_completed_never_exceeds_total(self):
        """Test extra stages beyond the declared total raise the total."""
        session = new_session()
        callbacks = ThinkingCallbacks()

        dispatch_event(StageEvent(stage="a", total_stages=1), session, callbacks)
        dispatch_event(StageEvent(stage="b"), session, callbacks)

        assert session.completed_stages == 2
        assert session.total_stages == 2

    def test_progress_is_zero_without_stages(self):
        """Test progress is zero while the total is unknown."""
        assert new_session().progress_percent == 0


class TestCallbackFailures:
    """Observer exceptions do not break the session."""

    def test_raising_callback_is_contained(self, caplog):
        """Test a failing on_stage is logged and later events still arrive."""
        session = new_session()
        completed = []

        def explode(event):
            raise RuntimeError("observer bug")

        callbacks = ThinkingCallbacks(on_stage=explode, on_complete=completed.append)

        assert dispatch_event(StageEvent(stage="a"), session, callbacks) is True
        dispatch_event(DoneEvent(), session, callbacks)

        assert session.completed_stages == 1
        assert len(completed) == 1
        assert "on_stage raised" in caplog.text

    def test_missing_slots_are_skipped(self):
        """Test every slot is optional."""
        session = new_session()
        callbacks = ThinkingCallbacks()

        dispatch_event(ThinkingEvent(), session, callbacks)
        dispatch_event(StageEvent(stage="a"), session, callbacks)
        dispatch_event(DoneEvent(), session, callbacks)

        assert not session.is_active
