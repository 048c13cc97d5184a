"""Quiz Session: Mode state machine driving selection, evaluation and progress updates."""

import logging
from typing import List, Optional

from .blocks import MASTERY_THRESHOLD, block_label, mastery_ratio, partition
from .feedback_generator import FeedbackGenerator
from .question_pool import Question, QuestionPool
from .shuffler import shuffle_options, shuffle_sequence

logger = logging.getLogger(__name__)

MENU = "menu"
QUIZ = "quiz"
FINAL = "final"
DIFFICULT = "difficult"
LEARN = "learn"
MODES = (QUIZ, FINAL, DIFFICULT, LEARN)

# screens reported to the presentation layer
SCREEN_MENU = "menu"
SCREEN_QUESTION = "question"
SCREEN_BLOCK_SELECT = "block_select"
SCREEN_NO_DIFFICULT = "no_difficult"
SCREEN_COMPLETED = "completed"

DEFAULT_BLOCK_SIZE = 10


class IllegalCommand(Exception):
    """A command was issued in a state where its preconditions do not hold."""


class SessionView:
    """Read-only snapshot of what the presentation layer needs to draw."""

    def __init__(self, mode: str, screen: str, question: Optional[Question] = None,
                 position: int = 0, total: int = 0, selected=(), submitted: bool = False,
                 last_correct: Optional[bool] = None, feedback: str = "",
                 error_count: int = 0, replaying: bool = False,
                 blocks: Optional[List[dict]] = None, attempts: Optional[list] = None):
        self.mode = mode
        self.screen = screen
        self.question = question
        self.position = position
        self.total = total
        self.selected = frozenset(selected)
        self.submitted = submitted
        self.last_correct = last_correct
        self.feedback = feedback
        self.error_count = error_count
        self.replaying = replaying
        self.blocks = blocks or []
        self.attempts = attempts or []

    @property
    def progress(self) -> float:
        return (self.position + 1) / self.total if self.total else 0.0

    @property
    def completed(self) -> bool:
        return self.screen == SCREEN_COMPLETED

    @property
    def no_difficult(self) -> bool:
        return self.screen == SCREEN_NO_DIFFICULT

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "screen": self.screen,
            "question": self.question.to_dict() if self.question else None,
            "position": self.position,
            "total": self.total,
            "progress": self.progress,
            "selected": sorted(self.selected),
            "submitted": self.submitted,
            "last_correct": self.last_correct,
            "feedback": self.feedback,
            "error_count": self.error_count,
            "replaying": self.replaying,
            "blocks": self.blocks,
            "attempts": [a.to_dict() for a in self.attempts],
        }


class QuizSession:
    """
    Drives one learner through the study modes.

    Commands mutate the session in place and either succeed completely or
    raise IllegalCommand before touching any state. Statistics go through the
    injected ProgressStore, which persists them as they change; restart()
    never clears them.
    """

    def __init__(self, pool: QuestionPool, progress, feedback_generator=None,
                 block_size: int = DEFAULT_BLOCK_SIZE, rng=None):
        self.pool = pool
        self.progress = progress
        self.feedback = feedback_generator or FeedbackGenerator()
        partition(pool.questions, block_size)  # validates block_size
        self.block_size = block_size
        self.rng = rng
        self._reset_state()

    # --- state bookkeeping ---

    def _reset_state(self):
        self.mode = MENU
        self.limit: Optional[int] = None
        self.selected_block: Optional[int] = None
        self.no_difficult = False
        self._start_pass([])

    def _start_pass(self, working_set: List[Question]):
        self.working_set = working_set
        self.total = len(working_set)
        self.position = 0
        self.error_count = 0
        self.wrong_in_pass: List[Question] = []
        self.replayed = False
        self.completed = False
        self._clear_answer()

    def _clear_answer(self):
        self.selected = set()
        self.submitted = False
        self.last_correct: Optional[bool] = None
        self.feedback_text = ""

    @property
    def in_block(self) -> bool:
        return self.mode == LEARN and self.selected_block is not None

    @property
    def screen(self) -> str:
        if self.mode == MENU:
            return SCREEN_MENU
        if self.no_difficult:
            return SCREEN_NO_DIFFICULT
        if self.mode == LEARN and self.selected_block is None:
            return SCREEN_BLOCK_SELECT
        if self.completed:
            return SCREEN_COMPLETED
        return SCREEN_QUESTION

    @property
    def current_question(self) -> Optional[Question]:
        if self.screen != SCREEN_QUESTION:
            return None
        return self.working_set[self.position]

    def _require_answering(self):
        if self.screen != SCREEN_QUESTION:
            raise IllegalCommand(f"No question is being asked (screen: {self.screen})")

    def _option_shuffled(self, questions) -> List[Question]:
        return [shuffle_options(q, self.rng) for q in questions]

    # --- mode selection ---

    def select_mode(self, mode: str, limit: Optional[int] = None):
        """Start a study mode from the menu. ``limit`` is required for quiz mode."""
        if self.mode != MENU:
            raise IllegalCommand(f"Cannot start {mode!r} while in {self.mode!r}; restart first")
        if mode == QUIZ:
            self._enter_quiz(limit)
        elif mode == FINAL:
            # pool order is kept on purpose; only options are shuffled
            self.mode = FINAL
            self._start_pass(self._option_shuffled(self.pool.questions))
        elif mode == DIFFICULT:
            self._enter_difficult()
        elif mode == LEARN:
            self.mode = LEARN
            self.selected_block = None
            self._start_pass([])
        else:
            raise IllegalCommand(f"Unknown mode {mode!r}")
        logger.info(f"Entered {self.mode} mode with {len(self.working_set)} questions")

    def _enter_quiz(self, limit):
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise IllegalCommand(f"Quiz mode needs a positive question limit, got {limit!r}")
        ordered = shuffle_sequence(self.pool.questions, self.rng)[:limit]
        self.mode = QUIZ
        self.limit = limit
        self._start_pass(self._option_shuffled(ordered))

    def _enter_difficult(self):
        hardest = [q for q in self.pool if self.progress.wrong_count(q.id) >= 1]
        self.mode = DIFFICULT
        if not hardest:
            self.no_difficult = True
            self._start_pass([])
            return
        self._start_pass(self._option_shuffled(shuffle_sequence(hardest, self.rng)))

    def restart(self):
        """Return to the menu from anywhere. Statistics are kept."""
        logger.debug(f"Restart from {self.mode}")
        self._reset_state()

    # --- learn mode blocks ---

    def blocks(self) -> List[List[Question]]:
        return partition(self.pool.questions, self.block_size)

    def block_status(self) -> List[dict]:
        status = []
        for i, block in enumerate(self.blocks()):
            mastered, size = mastery_ratio(block, self.progress.learn_progress, MASTERY_THRESHOLD)
            status.append({
                "index": i,
                "label": block_label(i, block, self.block_size),
                "mastered": mastered,
                "size": size,
            })
        return status

    def set_block_size(self, size: int):
        if self.in_block:
            raise IllegalCommand("Leave the current block before changing the block size")
        try:
            partition(self.pool.questions, size)
        except ValueError as e:
            raise IllegalCommand(str(e)) from e
        self.block_size = size

    def choose_block(self, index: int):
        if self.mode != LEARN or self.selected_block is not None:
            raise IllegalCommand("Blocks can only be chosen from the block list in learn mode")
        blocks = self.blocks()
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(blocks):
            raise IllegalCommand(f"No block {index!r}; there are {len(blocks)} blocks")
        # block order is fixed; only the options are shuffled
        self._start_pass(self._option_shuffled(blocks[index]))
        self.selected_block = index
        logger.info(f"Learning block {index + 1} ({len(self.working_set)} questions)")

    def exit_block(self):
        if not self.in_block:
            raise IllegalCommand("Not inside a learn block")
        self.selected_block = None
        self._start_pass([])

    # --- answering ---

    def set_selection(self, option_index: int):
        """Select (single answer) or toggle (multiple answers) an option."""
        self._require_answering()
        if self.submitted:
            return
        question = self.current_question
        if not 0 <= option_index < len(question.options):
            raise IllegalCommand(f"Option {option_index} does not exist")
        if question.is_multiple:
            self.selected ^= {option_index}
        else:
            self.selected = {option_index}

    def submit(self) -> bool:
        """Check the current selection. Returns whether it was correct."""
        self._require_answering()
        if self.submitted:
            raise IllegalCommand("Answer already submitted")
        if not self.selected:
            raise IllegalCommand("Select an option before submitting")

        question = self.current_question
        correct = question.is_correct(self.selected)
        self.submitted = True
        self.last_correct = correct

        if self.mode == LEARN:
            self.progress.update_streak(question.id, correct)
        if not correct:
            self.error_count += 1
            self.wrong_in_pass.append(question)
            self.progress.record_wrong(question.id)

        self.feedback_text = self.feedback.generate(correct, question)
        logger.debug(f"Question {question.id} answered {'correctly' if correct else 'wrong'}")
        return correct

    def advance(self):
        """Move on after a submitted answer."""
        self._require_answering()
        if not self.submitted:
            raise IllegalCommand("Submit an answer before moving on")

        if self.mode == LEARN:
            self._advance_learn()
            return

        if self.position + 1 < len(self.working_set):
            self.position += 1
            self._clear_answer()
            return

        if self.wrong_in_pass and not self.replayed:
            # replay the same shuffled copies, once
            self.working_set = list(self.wrong_in_pass)
            self.wrong_in_pass = []
            self.position = 0
            self.replayed = True
            self._clear_answer()
            logger.info(f"Replaying {len(self.working_set)} missed questions")
            return

        self._complete()

    def _advance_learn(self):
        if not self.last_correct:
            # retry the same question until it is answered correctly
            self._clear_answer()
            return
        if self.position + 1 < len(self.working_set):
            self.position += 1
            self._clear_answer()
            return
        logger.info(f"Finished block {self.selected_block + 1}")
        self.selected_block = None
        self._start_pass([])

    def _complete(self):
        if self.mode == FINAL:
            # replayed misses can push errors past the run length
            incorrect = min(self.error_count, self.total)
            self.progress.record_attempt(self.total, incorrect)
        self.completed = True
        self._clear_answer()
        logger.info(f"{self.mode} session complete with {self.error_count} errors")

    # --- statistics ---

    def export_stats(self) -> str:
        return self.progress.export_json()

    def import_stats(self, blob: str):
        self.progress.import_json(blob)

    def reset_stats(self, include_learn_progress: bool = False):
        self.progress.reset(include_learn_progress=include_learn_progress)

    # --- rendering ---

    def view(self) -> SessionView:
        screen = self.screen
        if screen == SCREEN_COMPLETED:
            feedback = self.feedback.generate_session_summary(self.error_count)
        elif screen == SCREEN_NO_DIFFICULT:
            feedback = self.feedback.generate_no_difficult()
        else:
            feedback = self.feedback_text
        return SessionView(
            mode=self.mode,
            screen=screen,
            question=self.current_question,
            position=self.position,
            total=len(self.working_set),
            selected=self.selected,
            submitted=self.submitted,
            last_correct=self.last_correct,
            feedback=feedback,
            error_count=self.error_count,
            replaying=self.replayed,
            blocks=self.block_status() if self.mode == LEARN else None,
            attempts=list(self.progress.attempts) if self.mode == MENU else None,
        )
