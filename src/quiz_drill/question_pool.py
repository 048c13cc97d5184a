"""Question Pool: Loads the question bank and assigns stable identifiers."""

import json
import logging
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

logger = logging.getLogger(__name__)


class QuestionFormatError(ValueError):
    """Raised when a question bank entry cannot be turned into a Question."""


class SingleAnswer:
    """Answer key for questions with exactly one correct option."""

    def __init__(self, index: int):
        self.index = index

    @property
    def indices(self) -> frozenset:
        return frozenset([self.index])

    def matches(self, selection) -> bool:
        return set(selection) == {self.index}

    def remap(self, permutation: List[int]) -> "SingleAnswer":
        return SingleAnswer(permutation.index(self.index))

    def to_dict(self) -> dict:
        return {"answer": self.index}

    def __eq__(self, other):
        return isinstance(other, SingleAnswer) and other.index == self.index

    def __hash__(self):
        return hash(("single", self.index))

    def __repr__(self):
        return f"SingleAnswer({self.index})"


class MultiAnswer:
    """Answer key for questions where a set of options must be selected."""

    def __init__(self, indices: Iterable[int]):
        self.indices = frozenset(indices)

    def matches(self, selection) -> bool:
        # set equality: order and duplicate clicks do not matter
        return set(selection) == self.indices

    def remap(self, permutation: List[int]) -> "MultiAnswer":
        return MultiAnswer(permutation.index(i) for i in self.indices)

    def to_dict(self) -> dict:
        return {"answers": sorted(self.indices)}

    def __eq__(self, other):
        return isinstance(other, MultiAnswer) and other.indices == self.indices

    def __hash__(self):
        return hash(("multi", self.indices))

    def __repr__(self):
        return f"MultiAnswer({sorted(self.indices)})"


class Question:
    """An immutable multiple-choice question."""

    def __init__(self, qid: int, text: str, options: Iterable[str], key,
                 image: Optional[str] = None):
        self.id = qid
        self.text = text
        self.options: Tuple[str, ...] = tuple(options)
        self.key = key
        self.image = image

    @property
    def is_multiple(self) -> bool:
        return isinstance(self.key, MultiAnswer)

    def is_correct(self, selection) -> bool:
        return self.key.matches(selection)

    def correct_options(self) -> List[str]:
        """Correct option texts, in display order."""
        return [self.options[i] for i in sorted(self.key.indices)]

    def with_options(self, options: Iterable[str], key) -> "Question":
        return Question(self.id, self.text, options, key, image=self.image)

    def to_dict(self) -> dict:
        data = {"id": self.id, "question": self.text, "options": list(self.options)}
        if self.image:
            data["image"] = self.image
        data.update(self.key.to_dict())
        return data

    def __repr__(self):
        return f"Question(id={self.id}, text={self.text[:30]!r})"


def _parse_index(raw, qid, n_options: int) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise QuestionFormatError(f"Question {qid}: answer index {raw!r} must be an integer.")
    if not 0 <= raw < n_options:
        raise QuestionFormatError(
            f"Question {qid}: answer index {raw} out of range for {n_options} options."
        )
    return raw


def parse_question(record: dict, qid: int) -> Question:
    """Build a Question from a raw bank record, resolving the answer variant once."""
    if not isinstance(record, dict):
        raise QuestionFormatError(f"Question {qid}: entry must be an object.")
    text = record.get("question")
    if not isinstance(text, str) or not text.strip():
        raise QuestionFormatError(f"Question {qid}: missing 'question' text.")

    options = record.get("options")
    if not isinstance(options, list) or len(options) < 2:
        raise QuestionFormatError(f"Question {qid}: options must be a list with 2+ entries.")
    options = [str(o) for o in options]

    has_single = "answer" in record
    has_multi = "answers" in record
    if has_single == has_multi:
        raise QuestionFormatError(
            f"Question {qid}: exactly one of 'answer' or 'answers' is required."
        )

    if has_single:
        key = SingleAnswer(_parse_index(record["answer"], qid, len(options)))
    else:
        raw = record["answers"]
        if not isinstance(raw, list) or not raw:
            raise QuestionFormatError(f"Question {qid}: 'answers' must be a non-empty list.")
        key = MultiAnswer(_parse_index(i, qid, len(options)) for i in raw)

    image = record.get("image")
    return Question(qid, text, options, key, image=str(image) if image else None)


class QuestionPool:
    """Read-only catalog of questions, each with a stable integer id."""

    def __init__(self, records: List[dict]):
        self._questions: Tuple[Question, ...] = tuple(self._build(records))
        self._by_id: Dict[int, Question] = {q.id: q for q in self._questions}
        logger.info(f"Question pool ready with {len(self._questions)} questions")

    @classmethod
    def from_file(cls, path: str) -> "QuestionPool":
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, dict) and isinstance(data.get("questions"), list):
            data = data["questions"]
        if not isinstance(data, list):
            raise QuestionFormatError(f"{path}: expected a list of questions.")
        return cls(data)

    @staticmethod
    def _build(records: List[dict]) -> List[Question]:
        if not records:
            raise QuestionFormatError("Question bank is empty.")

        with_ids = [isinstance(r, dict) and "id" in r for r in records]
        if not any(with_ids):
            # ids are handed out once, in input order
            return [parse_question(r, idx) for idx, r in enumerate(records)]
        if not all(with_ids):
            raise QuestionFormatError("Either every question carries an 'id' or none does.")

        questions = []
        seen = set()
        for r in records:
            qid = r["id"]
            if isinstance(qid, bool) or not isinstance(qid, int) or qid < 0:
                raise QuestionFormatError(f"Question id {qid!r} must be a non-negative integer.")
            if qid in seen:
                raise QuestionFormatError(f"Duplicate question id {qid}.")
            seen.add(qid)
            questions.append(parse_question(r, qid))
        return questions

    @property
    def questions(self) -> Tuple[Question, ...]:
        return self._questions

    def get(self, qid: int) -> Optional[Question]:
        return self._by_id.get(qid)

    def ids(self) -> List[int]:
        return [q.id for q in self._questions]

    def __len__(self) -> int:
        return len(self._questions)

    def __iter__(self) -> Iterator[Question]:
        return iter(self._questions)

    def __getitem__(self, index):
        return self._questions[index]
