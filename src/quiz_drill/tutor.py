"""Console Tutor: Text-mode front end translating typed input into session commands."""

import argparse
import logging
import random
import re
import sys
from pathlib import Path
from typing import Callable, List, Optional, Tuple

import yaml

from .feedback_generator import FeedbackGenerator
from .progress_store import MalformedPersistedData, ProgressStore
from .question_pool import QuestionFormatError, QuestionPool
from .session import (
    DIFFICULT, FINAL, LEARN, QUIZ,
    SCREEN_BLOCK_SELECT, SCREEN_MENU, SCREEN_QUESTION,
    IllegalCommand, QuizSession,
)
from .storage import MemoryStorage, SQLiteStorage

logger = logging.getLogger(__name__)

DEFAULT_LIMITS = [10, 20, 50, 100]
DEFAULT_BLOCK_SIZES = [5, 10, 20, 50]
DEFAULT_EXPORT_PATH = "quiz_stats.json"


class Tutor:
    """
    Runs the interactive loop: shows the menu, block list and questions,
    reads typed answers and forwards them to the QuizSession.
    """

    def __init__(self, session: QuizSession, feedback_generator=None,
                 limits: Optional[List[int]] = None, block_sizes: Optional[List[int]] = None):
        self.session = session
        self.feedback = feedback_generator or session.feedback
        self.limits = list(limits or DEFAULT_LIMITS)
        self.block_sizes = list(block_sizes or DEFAULT_BLOCK_SIZES)
        self._running = False

    def speak(self, text: str):
        print(f"\n{text}")

    def listen(self, prompt: str = "> ") -> str:
        try:
            return input(prompt).strip()
        except (EOFError, KeyboardInterrupt):
            return "quit"

    def handle_special_commands(self, text: str) -> Optional[str]:
        """Recognise navigation words typed instead of an answer."""
        lower = re.sub(r"[^\w\s]", "", text.lower()).strip()
        if lower in ("quit", "exit", "q"):
            return "quit"
        if lower in ("menu", "restart", "finish"):
            return "menu"
        if lower == "back":
            return "back"
        return None

    def _apply_navigation(self, command: str) -> bool:
        """Run a navigation command. Returns True if one was handled."""
        if command == "quit":
            self._running = False
        elif command == "menu":
            self.session.restart()
        elif command == "back":
            self.session.exit_block()
        else:
            return False
        return True

    # --- menu ---

    def menu_options(self) -> List[Tuple[str, Callable[[], None]]]:
        options = [("Final run (all questions)", lambda: self.session.select_mode(FINAL))]
        for n in self.limits:
            options.append((f"{n} questions", lambda n=n: self.session.select_mode(QUIZ, limit=n)))
        options += [
            ("Frequently missed questions", lambda: self.session.select_mode(DIFFICULT)),
            ("Learn mode", lambda: self.session.select_mode(LEARN)),
            ("Export statistics", self.export_stats),
            ("Import statistics", self.import_stats),
            ("Reset statistics", self.reset_stats),
            ("Quit", self.stop),
        ]
        return options

    def run_menu(self):
        view = self.session.view()
        lines = ["Choose a mode:"]
        options = self.menu_options()
        for i, (label, _) in enumerate(options, start=1):
            lines.append(f"  {i}. {label}")
        if view.attempts:
            lines.append("Final run history:")
            lines += [f"  {self.feedback.generate_attempt_line(a)}" for a in view.attempts]
        self.speak("\n".join(lines))

        choice = self.listen()
        if self.handle_special_commands(choice) == "quit":
            self.stop()
            return
        if not choice.isdigit() or not 1 <= int(choice) <= len(options):
            self.speak("Please enter a number from the menu.")
            return
        options[int(choice) - 1][1]()

    def stop(self):
        self._running = False

    def _ask_path(self, prompt: str) -> Optional[str]:
        """Ask for a stats file path; None means the learner cancelled."""
        text = self.listen(f"{prompt} [{DEFAULT_EXPORT_PATH}]: ")
        if self.handle_special_commands(text) == "quit":
            self.speak("Cancelled.")
            return None
        return text or DEFAULT_EXPORT_PATH

    def export_stats(self):
        path = self._ask_path("Export to")
        if path is None:
            return
        try:
            Path(path).write_text(self.session.export_stats(), encoding="utf-8")
        except OSError as e:
            self.speak(f"Could not write {path}: {e}")
            return
        self.speak(f"Statistics exported to {path}.")

    def import_stats(self):
        path = self._ask_path("Import from")
        if path is None:
            return
        try:
            self.session.import_stats(Path(path).read_text(encoding="utf-8"))
        except (OSError, MalformedPersistedData) as e:
            self.speak(f"Error reading file: {e}")
            return
        self.speak(f"Statistics imported from {path}.")

    def reset_stats(self):
        answer = self.listen("Reset all statistics? (y/n): ").lower()
        if answer in ("y", "yes"):
            self.session.reset_stats()
            self.speak("Statistics reset.")

    # --- learn mode block list ---

    def run_block_select(self):
        view = self.session.view()
        lines = ["Choose a block to learn:"]
        for block in view.blocks:
            line = self.feedback.generate_block_line(block["label"], block["mastered"], block["size"])
            lines.append(f"  {block['index'] + 1}. {line}")
        sizes = ", ".join(str(n) for n in self.block_sizes)
        lines.append(f"Type 'size N' to change the block size ({sizes}), or 'menu'.")
        self.speak("\n".join(lines))

        text = self.listen()
        if self._apply_navigation(self.handle_special_commands(text)):
            return
        match = re.fullmatch(r"size\s+(\d+)", text.lower())
        if match:
            self.session.set_block_size(int(match.group(1)))
            return
        if text.isdigit():
            self.session.choose_block(int(text) - 1)
            return
        self.speak("Please enter a block number.")

    # --- questions ---

    def render_question(self, view) -> str:
        question = view.question
        lines = [self.feedback.generate_intro(view.position, view.total, view.replaying),
                 question.text]
        if question.image:
            lines.append(f"[image: {question.image}]")
        for i, option in enumerate(question.options):
            mark = "*" if i in view.selected else " "
            lines.append(f" {mark}{i + 1}. {option}")
        if question.is_multiple:
            lines.append("(several answers; enter all option numbers separated by spaces)")
        return "\n".join(lines)

    def run_question(self):
        view = self.session.view()
        self.speak(self.render_question(view))
        if view.submitted:
            # answered earlier; only moving on is left
            self.speak(view.feedback)
            self.run_continue()
            return

        text = self.listen()
        if self._apply_navigation(self.handle_special_commands(text)):
            return
        numbers = [int(n) for n in re.findall(r"\d+", text)]
        if not numbers:
            self.speak("Please enter the number of your answer.")
            return
        n_options = len(view.question.options)
        if any(not 1 <= n <= n_options for n in numbers):
            self.speak(f"Options are numbered 1 to {n_options}.")
            return
        for n in numbers:
            self.session.set_selection(n - 1)
        self.session.submit()
        self.speak(self.session.view().feedback)
        self.run_continue()

    def run_continue(self):
        text = self.listen("Press Enter to continue... ")
        if self._apply_navigation(self.handle_special_commands(text)):
            return
        self.session.advance()

    def run_summary(self):
        self.speak(self.session.view().feedback)
        text = self.listen("Press Enter to return to the menu... ")
        if self.handle_special_commands(text) == "quit":
            self.stop()
            return
        self.session.restart()

    def step(self):
        """Handle one screen worth of interaction."""
        screen = self.session.screen
        try:
            if screen == SCREEN_MENU:
                self.run_menu()
            elif screen == SCREEN_BLOCK_SELECT:
                self.run_block_select()
            elif screen == SCREEN_QUESTION:
                self.run_question()
            else:
                self.run_summary()
        except IllegalCommand as e:
            logger.debug(f"Rejected command: {e}")
            self.speak(f"Can't do that: {e}")

    def run(self):
        """Run until the learner quits."""
        self._running = True
        for notice in self.session.progress.notices:
            self.speak(f"Note: {notice}")
        self.speak(f"Welcome! The question bank has {len(self.session.pool)} questions.")
        while self._running:
            self.step()
        self.speak("Goodbye!")


def load_config(path: str) -> dict:
    config_path = Path(path)
    if not config_path.exists():
        logger.debug(f"No config file at {path}; using defaults")
        return {}
    with open(config_path) as f:
        return yaml.safe_load(f) or {}


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Multiple-choice self-quizzing trainer")
    parser.add_argument("--config", default="config.yaml", help="Config file path")
    parser.add_argument("--questions", default=None, help="Question bank path")
    parser.add_argument("--db", default=None, help="Statistics database path")
    parser.add_argument("--no-persist", action="store_true", help="Keep statistics in memory only")
    parser.add_argument("--seed", type=int, default=None, help="Seed for reproducible shuffles")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    args = parser.parse_args(argv)

    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(level=log_level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    config = load_config(args.config)
    quiz_cfg = config.get("quiz", {})
    storage_cfg = config.get("storage", {})

    questions_path = args.questions or quiz_cfg.get("questions", "data/questions.json")
    try:
        pool = QuestionPool.from_file(questions_path)
    except (OSError, ValueError) as e:
        # QuestionFormatError and json errors are both ValueErrors
        kind = "Invalid question bank" if isinstance(e, QuestionFormatError) else "Cannot load questions"
        logger.error(f"{kind}: {e}")
        return 1

    if args.no_persist or not storage_cfg.get("persist", True):
        storage = MemoryStorage()
    else:
        storage = SQLiteStorage(db_path=args.db or storage_cfg.get("db_path", "quiz_stats.db"))
    progress = ProgressStore(storage).load()

    seed = args.seed if args.seed is not None else quiz_cfg.get("seed")
    rng = random.Random(seed) if seed is not None else None

    feedback = FeedbackGenerator()
    try:
        session = QuizSession(
            pool,
            progress,
            feedback_generator=feedback,
            block_size=quiz_cfg.get("block_size", 10),
            rng=rng,
        )
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    tutor = Tutor(
        session,
        feedback_generator=feedback,
        limits=quiz_cfg.get("limits"),
        block_sizes=quiz_cfg.get("block_sizes"),
    )
    tutor.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
