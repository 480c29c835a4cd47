import re

import pytest

from conftest import FakeGateway, docx_bytes, make_questions
from controller import BATCH_SIZE, NO_QUESTIONS_TEXT, QuestionFeedController
from errors import BusyError, ExtractionError, TransportError, UpstreamError, ValidationError
from storage import (
    MORE_EMPTY_LABEL,
    MORE_FAILED_LABEL,
    MORE_LABEL,
    Phase,
    Question,
    ResumeFile,
)

RESUME = ResumeFile(filename="cv.pdf", content_type="application/pdf", data=b"%PDF")


def _numbers(cards):
    return [int(re.match(r"Q(\d+) ", c).group(1)) for c in cards]


def _controller(gateway, text="Python developer", **kw):
    return QuestionFeedController(gateway, extractor=lambda name, data, ct: text, **kw)


def test_submit_requires_file():
    gw = FakeGateway(make_questions(3))
    with pytest.raises(ValidationError):
        _controller(gw).submit(None, "Dev")
    assert gw.calls == 0


@pytest.mark.parametrize("position", ["", "   ", None])
def test_submit_requires_position(position):
    gw = FakeGateway(make_questions(3))
    ctl = _controller(gw)
    with pytest.raises(ValidationError):
        ctl.submit(RESUME, position)
    assert gw.calls == 0
    assert ctl.state.phase is Phase.IDLE
    assert ctl.state.query is None


def test_long_resume_is_truncated_to_exactly_10000():
    gw = FakeGateway(make_questions(1))
    _controller(gw, text="x" * 12_345).submit(RESUME, "Dev")
    assert len(gw.queries[0].resume_text) == 10_000


def test_short_resume_is_sent_unmodified():
    gw = FakeGateway(make_questions(1))
    text = "  Jane Doe\nPython  "
    _controller(gw, text=text).submit(RESUME, "Dev", "Acme", "hard")
    q = gw.queries[0]
    assert q.resume_text == text
    assert (q.position, q.company, q.difficulty) == ("Dev", "Acme", "hard")


def test_difficulty_defaults_to_all():
    gw = FakeGateway(make_questions(1))
    _controller(gw).submit(RESUME, " Dev ")
    assert gw.queries[0].difficulty == "all"
    assert gw.queries[0].position == "Dev"


@pytest.mark.parametrize("n", [1, 9, 10, 11, 20, 23, 35])
def test_batches_cover_feed_with_contiguous_numbering(n):
    ctl = _controller(FakeGateway(make_questions(n)))
    sizes = [len(ctl.submit(RESUME, "Dev"))]
    while ctl.state.feed.displayed_count < n:
        sizes.append(len(ctl.render_next_batch(False)))
    assert sum(sizes) == n
    assert all(s <= BATCH_SIZE for s in sizes)
    assert _numbers(ctl.state.rendered) == list(range(1, n + 1))


def test_end_to_end_23_questions():
    gw = FakeGateway(make_questions(23), make_questions(5, prefix="More"))
    ctl = _controller(gw)

    assert _numbers(ctl.submit(RESUME, "Dev")) == list(range(1, 11))
    assert ctl.state.more_visible

    assert _numbers(ctl.request_more()) == list(range(11, 21))
    assert gw.calls == 1
    assert _numbers(ctl.request_more()) == [21, 22, 23]
    assert gw.calls == 1
    assert ctl.state.more_visible and ctl.state.more_label == MORE_LABEL

    cards = ctl.request_more()
    assert gw.calls == 2
    assert _numbers(cards) == [24, 25, 26, 27, 28]
    assert "More question 1" in cards[0]
    assert len(ctl.state.feed.all) == 28


def test_request_more_reuses_stored_query():
    gw = FakeGateway(make_questions(2), make_questions(2))
    ctl = _controller(gw, text="y" * 20_000)
    ctl.submit(RESUME, "Dev", "Acme", "easy")
    ctl.request_more()
    assert gw.queries[1] is gw.queries[0]
    assert gw.queries[1] is ctl.state.query


def test_new_submit_replaces_feed_and_query():
    gw = FakeGateway(make_questions(15), make_questions(3, prefix="New"))
    ctl = _controller(gw)
    ctl.submit(RESUME, "Dev")
    ctl.request_more()
    ctl.submit(RESUME, "Lead", "Other")
    assert _numbers(ctl.state.rendered) == [1, 2, 3]
    assert ctl.state.feed.displayed_count == 3
    assert len(ctl.state.feed.all) == 3
    assert ctl.state.query.position == "Lead"


def test_empty_result_renders_placeholder():
    ctl = _controller(FakeGateway([]))
    cards = ctl.submit(RESUME, "Dev")
    assert len(cards) == 1
    assert cards[0].startswith(NO_QUESTIONS_TEXT)
    assert ctl.state.rendered == cards
    assert ctl.state.feed.all == []
    assert not ctl.state.more_visible
    assert ctl.state.phase is Phase.READY


def test_fallback_result_looks_like_empty_result():
    fallback = Question(text="Failed to generate questions. Please try again.",
                        diagnostic={"httpStatus": 200})
    ctl = _controller(FakeGateway([fallback]))
    [card] = ctl.submit(RESUME, "Dev")
    assert card.startswith(fallback.text)
    assert ctl.state.feed.all == []


def test_first_submit_failure_leaves_feed_empty():
    ctl = _controller(FakeGateway(TransportError("Could not reach gateway")))
    with pytest.raises(TransportError):
        ctl.submit(RESUME, "Dev")
    assert ctl.state.feed.all == []
    assert ctl.state.query is None
    assert ctl.state.error == "Could not reach gateway"
    assert ctl.state.phase is Phase.IDLE


def test_retry_failure_keeps_prior_state():
    gw = FakeGateway(make_questions(12), UpstreamError("Oracle API error"))
    ctl = _controller(gw)
    ctl.submit(RESUME, "Dev")
    before = (list(ctl.state.feed.all), ctl.state.feed.displayed_count, list(ctl.state.rendered), ctl.state.query)

    with pytest.raises(UpstreamError):
        ctl.submit(RESUME, "Other role")
    after = (list(ctl.state.feed.all), ctl.state.feed.displayed_count, list(ctl.state.rendered), ctl.state.query)
    assert after == before
    assert ctl.state.phase is Phase.READY


def test_extraction_failure_makes_no_network_call():
    def bad_extractor(name, data, ct):
        raise ExtractionError("Could not read PDF document")

    gw = FakeGateway(make_questions(3))
    ctl = QuestionFeedController(gw, extractor=bad_extractor)
    with pytest.raises(ExtractionError):
        ctl.submit(RESUME, "Dev")
    assert gw.calls == 0
    assert ctl.state.phase is Phase.IDLE


def test_request_more_with_empty_reply_marks_unavailable():
    gw = FakeGateway(make_questions(4), [])
    ctl = _controller(gw)
    ctl.submit(RESUME, "Dev")
    assert ctl.request_more() == []
    assert ctl.state.more_label == MORE_EMPTY_LABEL
    assert ctl.state.more_visible
    assert len(ctl.state.feed.all) == 4
    assert ctl.state.phase is Phase.READY


def test_request_more_failure_marks_failed_without_mutation():
    gw = FakeGateway(make_questions(4), TransportError("timeout"))
    ctl = _controller(gw)
    ctl.submit(RESUME, "Dev")
    assert ctl.request_more() == []
    assert ctl.state.more_label == MORE_FAILED_LABEL
    assert len(ctl.state.feed.all) == 4
    assert ctl.state.phase is Phase.READY


def test_request_more_before_any_generation():
    with pytest.raises(ValidationError):
        _controller(FakeGateway()).request_more()


def test_in_flight_guard_rejects_overlapping_requests():
    class ReentrantGateway(FakeGateway):
        def generate(self, query):
            with pytest.raises(BusyError):
                ctl.submit(RESUME, "Dev")
            if self.calls:
                with pytest.raises(BusyError):
                    ctl.request_more()
            return super().generate(query)

    gw = ReentrantGateway(make_questions(10), make_questions(2))
    ctl = _controller(gw)
    ctl.submit(RESUME, "Dev")
    ctl.request_more()
    assert gw.calls == 2
    assert ctl.state.phase is Phase.READY


def test_busy_phase_blocks_submit():
    ctl = _controller(FakeGateway(make_questions(1)))
    ctl.state.phase = Phase.REQUESTING
    with pytest.raises(BusyError):
        ctl.submit(RESUME, "Dev")


def test_reset_rerenders_from_first_question():
    ctl = _controller(FakeGateway(make_questions(15)))
    ctl.submit(RESUME, "Dev")
    ctl.request_more()
    cards = ctl.reset()
    assert _numbers(cards) == list(range(1, 11))
    assert _numbers(ctl.state.rendered) == list(range(1, 11))
    assert len(ctl.state.feed.all) == 15


def test_render_sink_receives_batches():
    seen = []
    ctl = _controller(FakeGateway(make_questions(12)), on_render=lambda cards, reset: seen.append((len(cards), reset)))
    ctl.submit(RESUME, "Dev")
    ctl.request_more()
    assert seen == [(10, True), (2, False)]


def test_card_defaults_for_loose_records():
    ctl = _controller(FakeGateway([Question(text="", category="", difficulty="Preferred difficulty")]))
    [card] = ctl.submit(RESUME, "Dev")
    assert card == "Q1  [MEDIUM]\nNo question text available\nCategory: General"


def test_select_file_validates_and_stores():
    ctl = _controller(FakeGateway(make_questions(1)))
    f = ctl.select_file("cv.docx", docx_bytes("Jane"))
    assert f.content_type.endswith("wordprocessingml.document")
    assert ctl.state.file is f
    ctl.submit(position="Dev")
    assert ctl.state.feed.displayed_count == 1

    with pytest.raises(ExtractionError):
        ctl.select_file("cv.png", b"\x89PNG")
    with pytest.raises(ExtractionError):
        ctl.select_file("cv.pdf", b"a" * (5 * 1024 * 1024 + 1))
    ctl.clear_file()
    assert ctl.state.file is None


def test_real_extractor_with_docx():
    gw = FakeGateway(make_questions(1))
    ctl = QuestionFeedController(gw)
    ctl.select_file("cv.docx", docx_bytes("Jane Doe", "Python, SQL"))
    ctl.submit(position="Data Engineer")
    assert gw.queries[0].resume_text == "Jane Doe\nPython, SQL"
