"""Tests for the reasoning display policy."""

from thinkrelay.core.reasoning import ReasoningDisplay, ReasoningPhase

NO_YET = ReasoningPhase.NO_REASONING_YET
IN = ReasoningPhase.IN_REASONING
DONE = ReasoningPhase.DONE


class TestReasoningStep:
    """Tests for the per-delta reasoning state machine."""

    def test_first_reasoning_opens_marker(self):
        display = ReasoningDisplay()
        phase, text = display.step(NO_YET, "Let me think", None)
        assert phase is IN
        assert text == "<think>\nLet me think"

    def test_further_reasoning_is_passed_through(self):
        display = ReasoningDisplay()
        phase, text = display.step(IN, " more", None)
        assert phase is IN
        assert text == " more"

    def test_content_after_reasoning_closes_marker(self):
        display = ReasoningDisplay()
        phase, text = display.step(IN, None, "Hello")
        assert phase is DONE
        assert text == "\n</think>\n\nHello"

    def test_content_without_reasoning_has_no_markers(self):
        display = ReasoningDisplay()
        phase, text = display.step(NO_YET, None, "Hello")
        assert phase is DONE
        assert text == "Hello"

    def test_reasoning_and_content_in_one_delta(self):
        display = ReasoningDisplay()
        phase, text = display.step(NO_YET, "why", "because")
        assert phase is DONE
        assert text == "<think>\nwhy\n</think>\n\nbecause"

    def test_finish_while_reasoning_closes_marker(self):
        """Test that a stream ending mid-reasoning still closes the block."""
        display = ReasoningDisplay()
        phase, text = display.step(IN, None, None, finishing=True)
        assert phase is DONE
        assert text == "\n</think>\n\n"

    def test_empty_delta_passes_content_unchanged(self):
        display = ReasoningDisplay()
        assert display.step(NO_YET, None, "") == (NO_YET, "")
        assert display.step(NO_YET, None, None) == (NO_YET, None)

    def test_disabled_drops_reasoning(self):
        display = ReasoningDisplay(enabled=False)
        assert display.step(NO_YET, "secret", None) == (NO_YET, None)
        assert display.step(NO_YET, "secret", "answer") == (NO_YET, "answer")

    def test_custom_tag(self):
        display = ReasoningDisplay(tag="reasoning")
        _, text = display.step(NO_YET, "x", None)
        assert text == "<reasoning>\nx"

    def test_markers_appear_once_over_a_sequence(self):
        display = ReasoningDisplay()
        phase = NO_YET
        output = []
        for reasoning, content in [("a", None), ("b", None), (None, "c"), (None, "d")]:
            phase, text = display.step(phase, reasoning, content)
            output.append(text)
        joined = "".join(output)
        assert joined == "<think>\nab\n</think>\n\ncd"
        assert joined.count("<think>") == 1
        assert joined.count("</think>") == 1


class TestReasoningWrap:
    """Tests for one-shot rendering of buffered messages."""

    def test_wrap_with_reasoning(self):
        assert ReasoningDisplay().wrap("why", "answer") == "<think>\nwhy\n</think>\n\nanswer"

    def test_wrap_without_reasoning(self):
        assert ReasoningDisplay().wrap(None, "answer") == "answer"
        assert ReasoningDisplay().wrap("", "answer") == "answer"

    def test_wrap_disabled(self):
        assert ReasoningDisplay(enabled=False).wrap("why", "answer") == "answer"

    def test_wrap_missing_content(self):
        assert ReasoningDisplay().wrap("why", None) == "<think>\nwhy\n</think>\n\n"
