"""Tests for the final report and transcript recording."""

from deepthink.assist.report import CLOSING_ADVICE, TranscriptRecorder, compose_report
from deepthink.models import StageEvent, ThinkingCallbacks, ThinkingEvent, ThinkingSession


class TestComposeReport:
    """Tests for the markdown report."""

    def test_sections_in_stage_order(self):
        """Test each stage becomes a numbered section."""
        report = compose_report("Explain DMA", [
            StageEvent(stage="problem analysis", content="Memory to peripheral."),
            StageEvent(stage="summary", content="Use circular mode."),
        ])

        assert report.startswith("# Deep thinking result")
        assert "**Question:** Explain DMA" in report
        assert "**Analysis depth:** 2 research direction(s)" in report
        assert report.index("## Analysis 1: problem analysis") < report.index("## Analysis 2: summary")
        assert report.endswith(CLOSING_ADVICE)

    def test_stage_without_content_skipped(self):
        """Test empty stages are counted but not rendered."""
        report = compose_report("Q", [StageEvent(stage="empty"), StageEvent(content="Body")])

        assert "empty" not in report
        assert "## Analysis 2\nBody" in report


class TestTranscriptRecorder:
    """Tests for the recording callbacks."""

    def test_records_and_forwards(self):
        """Test notifications are recorded and passed downstream."""
        forwarded: list[str] = []
        recorder = TranscriptRecorder(
            "Explain DMA",
            downstream=ThinkingCallbacks(on_stage=lambda e: forwarded.append(e.stage)),
        )
        session = ThinkingSession(question="Explain DMA", is_active=False)

        recorder.on_thinking(ThinkingEvent(thinking="hmm"))
        recorder.on_stage(StageEvent(stage="a", content="x"))
        assert not recorder.finished
        recorder.on_complete(session)

        assert recorder.finished
        assert recorder.last_thinking.thinking == "hmm"
        assert forwarded == ["a"]
        assert recorder.final_session is session
        assert "## Analysis 1: a" in recorder.report()

    def test_error_finishes(self):
        """Test an error marks the transcript finished."""
        recorder = TranscriptRecorder("Q")

        recorder.on_error("boom")

        assert recorder.finished
        assert recorder.error == "boom"
