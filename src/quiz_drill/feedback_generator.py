"""Feedback Generator: Text shown to the learner after answers and at session ends."""

import random


CORRECT_TEMPLATES = [
    "Correct! {reinforcement}",
    "That's right! {reinforcement}",
    "Well done! {reinforcement}",
]

INCORRECT_TEMPLATES = [
    "Incorrect. {explanation}",
    "Not quite. {explanation}",
]

REINFORCEMENTS = [
    "Keep it up!",
    "Nice work.",
    "On to the next one.",
]


class FeedbackGenerator:
    """Generates feedback and summary lines from engine state."""

    def generate(self, correct: bool, question) -> str:
        """Generate feedback for a submitted answer."""
        if correct:
            template = random.choice(CORRECT_TEMPLATES)
            return template.format(reinforcement=random.choice(REINFORCEMENTS)).strip()
        template = random.choice(INCORRECT_TEMPLATES)
        return template.format(explanation=self.correct_answer_text(question))

    def correct_answer_text(self, question) -> str:
        answers = question.correct_options()
        label = "The correct answers are" if len(answers) > 1 else "The correct answer is"
        return f"{label}: {', '.join(answers)}"

    def generate_intro(self, position: int, total: int, replaying: bool = False) -> str:
        """Generate the heading for a question."""
        intro = f"Question {position + 1} of {total}"
        if replaying:
            intro += " (review of missed questions)"
        return intro

    def generate_session_summary(self, error_count: int) -> str:
        """Generate end-of-session summary."""
        summary = f"Quiz complete! Mistakes made: {error_count}."
        if error_count == 0:
            summary += " Flawless run!"
        return summary

    def generate_no_difficult(self) -> str:
        return (
            "No difficult questions yet. "
            "You have not answered anything wrong often enough to build a list."
        )

    def generate_attempt_line(self, attempt) -> str:
        return f"{attempt.timestamp}: {attempt.correct}/{attempt.total} ({attempt.percent}%)"

    def generate_block_line(self, label: str, mastered: int, size: int) -> str:
        return f"{label} ({mastered}/{size} learned)"
