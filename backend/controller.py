"""
Purpose: Client-side orchestration for one question session. Owns the
selected file, the last generation query, the question feed and what has
been rendered so far.

Key responsibilities:
- File intake: type/size checks before anything is read.
- submit(): extract, truncate, request, replace the feed, render batch one.
- render_next_batch(): fixed-size, append-only, sequentially numbered cards.
- request_more(): reveal the next local batch, or fetch more with the
  stored query once everything local is on screen.

Only one generation request may be in flight per session. The phase tag on
SessionState is the guard; it is checked and set under a lock.

Testing: inject a fake gateway (anything with generate(query)) and a fake
extractor; no network needed.
"""

from __future__ import annotations
import logging
import threading
from typing import Callable, List, Optional, Sequence

from errors import BusyError, InterviewError, ValidationError
from helpers import _truncate
from parsers import check_document, extract_text, guess_content_type
from storage import (
    MORE_BUSY_LABEL,
    MORE_EMPTY_LABEL,
    MORE_FAILED_LABEL,
    MORE_LABEL,
    GenerationQuery,
    Phase,
    Question,
    QuestionFeed,
    ResumeFile,
    SessionState,
    normalize_difficulty,
)

LOG = logging.getLogger("controller")

BATCH_SIZE = 10
NO_QUESTIONS_TEXT = "Failed to generate questions. Please try again."

Extractor = Callable[[str, bytes, Optional[str]], str]
RenderSink = Callable[[List[str], bool], None]


def render_card(number: int, q: Question) -> str:
    difficulty = normalize_difficulty(q.difficulty)
    return (
        f"Q{number}  [{difficulty.upper()}]\n"
        f"{q.text or 'No question text available'}\n"
        f"Category: {q.category or 'General'}"
    )


def render_placeholder(text: str = NO_QUESTIONS_TEXT) -> str:
    return f"{text}\nCategory: General"


class QuestionFeedController:
    def __init__(
        self,
        gateway,
        extractor: Extractor = extract_text,
        on_render: Optional[RenderSink] = None,
        state: Optional[SessionState] = None,
    ):
        self.gateway = gateway
        self.extractor = extractor
        self.on_render = on_render
        self.state = state or SessionState()
        self._lock = threading.Lock()

    # ---------- guard ----------
    def _enter(self, phase: Phase) -> Phase:
        with self._lock:
            if self.state.phase.in_flight:
                raise BusyError(f"A request is already in flight ({self.state.phase.value})")
            previous = self.state.phase
            self.state.phase = phase
            return previous

    def _emit(self, cards: List[str], reset: bool) -> None:
        if self.on_render is not None:
            self.on_render(cards, reset)

    # ---------- file intake ----------
    def select_file(self, filename: str, data: bytes, content_type: Optional[str] = None) -> ResumeFile:
        ct = guess_content_type(filename, content_type)
        check_document(filename, ct, len(data or b""))
        self.state.file = ResumeFile(filename=filename, content_type=ct, data=data)
        LOG.info("[controller] selected %s (%s, %d bytes)", filename, ct, len(data))
        return self.state.file

    def clear_file(self) -> None:
        self.state.file = None

    # ---------- operations ----------
    def submit(
        self,
        file: Optional[ResumeFile] = None,
        position: str = "",
        company: str = "",
        difficulty: Optional[str] = None,
    ) -> List[str]:
        """Top-level generation. Returns the cards rendered by this call."""
        file = file or self.state.file
        position = (position or "").strip()
        if file is None:
            raise ValidationError("Please upload your resume first")
        if not position:
            raise ValidationError("Please enter the target position")

        previous = self._enter(Phase.EXTRACTING)
        self.state.error = None
        try:
            text = self.extractor(file.filename, file.data, file.content_type)
            query = GenerationQuery(
                resume_text=_truncate(text),
                position=position,
                company=(company or "").strip(),
                difficulty=difficulty or "all",
            )
            self.state.phase = Phase.REQUESTING
            questions = self.gateway.generate(query)

            self.state.file = file
            self.state.query = query
            cards = self._replace_feed(questions)
            self.state.phase = Phase.READY
            return cards
        except InterviewError as e:
            self.state.error = e.message
            LOG.error("[controller] generation failed (%s): %s", e.kind, e.message)
            raise
        finally:
            if self.state.phase.in_flight:
                self.state.phase = previous

    def _replace_feed(self, questions: Sequence[Question]) -> List[str]:
        real = [q for q in questions if not q.is_fallback]
        self.state.feed = QuestionFeed(all=real)
        if real:
            return self.render_next_batch(reset=True)

        # zero questions and a gateway fallback look the same on screen
        fallback = next((q for q in questions if q.is_fallback), None)
        card = render_placeholder(fallback.text if fallback and fallback.text else NO_QUESTIONS_TEXT)
        self.state.rendered = [card]
        self.state.more_visible = False
        self._emit([card], True)
        return [card]

    def render_next_batch(self, reset: bool = False) -> List[str]:
        feed = self.state.feed
        if reset:
            self.state.rendered = []
            feed.displayed_count = 0

        start = feed.displayed_count
        batch = feed.all[start:start + BATCH_SIZE]
        cards = [render_card(start + i + 1, q) for i, q in enumerate(batch)]
        feed.displayed_count += len(batch)
        self.state.rendered.extend(cards)

        self.state.more_visible = True
        self.state.more_label = MORE_LABEL
        self._emit(cards, reset)
        return cards

    def reset(self) -> List[str]:
        return self.render_next_batch(reset=True)

    def request_more(self) -> List[str]:
        feed = self.state.feed
        if feed.displayed_count < len(feed.all):
            return self.render_next_batch(reset=False)

        if self.state.query is None:
            raise ValidationError("Generate questions before asking for more")

        previous = self._enter(Phase.REQUESTING_MORE)
        self.state.more_label = MORE_BUSY_LABEL
        try:
            questions = self.gateway.generate(self.state.query)
        except InterviewError as e:
            self.state.error = e.message
            self.state.more_label = MORE_FAILED_LABEL
            LOG.error("[controller] generate more failed (%s): %s", e.kind, e.message)
            return []
        finally:
            self.state.phase = previous

        real = [q for q in questions if not q.is_fallback]
        if not real:
            self.state.more_label = MORE_EMPTY_LABEL
            return []
        feed.all.extend(real)
        return self.render_next_batch(reset=False)
