"""Progress Store: Wrong-answer counters, Learn streaks and Final-run attempts."""

import json
import logging
from datetime import datetime
from typing import Dict, List, Optional

from .storage import MemoryStorage

logger = logging.getLogger(__name__)

WRONG_COUNTS_KEY = "wrongCounts"
LEARN_PROGRESS_KEY = "learnProgress"


class MalformedPersistedData(ValueError):
    """Stored or imported statistics could not be understood."""


class AttemptRecord:
    """Result of one completed Final run."""

    def __init__(self, timestamp: str, total: int, correct: int, incorrect: int):
        self.timestamp = timestamp
        self.total = total
        self.correct = correct
        self.incorrect = incorrect

    @property
    def percent(self) -> int:
        return round(self.correct / self.total * 100) if self.total > 0 else 0

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "total": self.total,
            "correct": self.correct,
            "incorrect": self.incorrect,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AttemptRecord":
        if not isinstance(data, dict):
            raise MalformedPersistedData(f"Attempt record must be an object, got {data!r}")
        # older exports call the field "date"
        timestamp = data.get("timestamp", data.get("date", ""))
        counts = [data.get(k) for k in ("total", "correct", "incorrect")]
        if not all(_is_count(v) for v in counts):
            raise MalformedPersistedData(f"Attempt record has invalid counts: {data!r}")
        total, correct, incorrect = counts
        if correct + incorrect != total:
            raise MalformedPersistedData(f"Attempt record does not add up: {data!r}")
        return cls(str(timestamp), total, correct, incorrect)

    def __repr__(self):
        return f"AttemptRecord({self.timestamp!r}, {self.correct}/{self.total})"


def _is_count(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _parse_id(raw) -> int:
    try:
        qid = int(raw)
    except (TypeError, ValueError):
        raise MalformedPersistedData(f"Invalid question id {raw!r}") from None
    if qid < 0:
        raise MalformedPersistedData(f"Invalid question id {raw!r}")
    return qid


def parse_wrong_counts(raw) -> Dict[int, int]:
    if not isinstance(raw, dict):
        raise MalformedPersistedData("wrongCounts must be an object")
    counts = {}
    for key, value in raw.items():
        if not _is_count(value):
            raise MalformedPersistedData(f"wrongCounts[{key}] must be a non-negative integer")
        counts[_parse_id(key)] = value
    return counts


def parse_learn_progress(raw) -> Dict[int, dict]:
    if not isinstance(raw, dict):
        raise MalformedPersistedData("learnProgress must be an object")
    progress = {}
    for key, value in raw.items():
        if not isinstance(value, dict) or not _is_count(value.get("streak", 0)):
            raise MalformedPersistedData(f"learnProgress[{key}] must look like {{'streak': n}}")
        progress[_parse_id(key)] = {"streak": value.get("streak", 0)}
    return progress


def parse_attempts(raw) -> List[AttemptRecord]:
    if not isinstance(raw, list):
        raise MalformedPersistedData("attempts must be a list")
    return [AttemptRecord.from_dict(item) for item in raw]


class ProgressStore:
    """Owns per-question statistics and writes them through to a key-value storage.

    Wrong counts and learn progress are written to storage on every change;
    attempts live in memory and travel through export/import only.
    """

    def __init__(self, storage=None):
        self.storage = storage if storage is not None else MemoryStorage()
        self.wrong_counts: Dict[int, int] = {}
        self.learn_progress: Dict[int, dict] = {}
        self.attempts: List[AttemptRecord] = []
        self.notices: List[str] = []

    def load(self):
        """Read both documents from storage, falling back to empty on bad data."""
        self.wrong_counts = self._load_document(WRONG_COUNTS_KEY, parse_wrong_counts)
        self.learn_progress = self._load_document(LEARN_PROGRESS_KEY, parse_learn_progress)
        logger.info(
            f"Loaded stats: {len(self.wrong_counts)} wrong counts, "
            f"{len(self.learn_progress)} learn records"
        )
        return self

    def _load_document(self, key: str, parser) -> dict:
        raw = self.storage.get(key)
        if raw is None:
            return {}
        try:
            return parser(json.loads(raw))
        except (json.JSONDecodeError, MalformedPersistedData) as e:
            notice = f"Stored {key} could not be read and was reset: {e}"
            logger.warning(notice)
            self.notices.append(notice)
            return {}

    def _save_wrong_counts(self):
        self.storage.set(WRONG_COUNTS_KEY, json.dumps(self.wrong_counts))

    def _save_learn_progress(self):
        self.storage.set(LEARN_PROGRESS_KEY, json.dumps(self.learn_progress))

    # --- wrong counts ---

    def wrong_count(self, qid: int) -> int:
        return self.wrong_counts.get(qid, 0)

    def record_wrong(self, qid: int) -> int:
        self.wrong_counts[qid] = self.wrong_counts.get(qid, 0) + 1
        self._save_wrong_counts()
        return self.wrong_counts[qid]

    # --- learn streaks ---

    def streak(self, qid: int) -> int:
        return self.learn_progress.get(qid, {}).get("streak", 0)

    def update_streak(self, qid: int, correct: bool) -> int:
        streak = self.streak(qid) + 1 if correct else 0
        self.learn_progress[qid] = {"streak": streak}
        self._save_learn_progress()
        return streak

    # --- final runs ---

    def record_attempt(self, total: int, incorrect: int,
                       timestamp: Optional[str] = None) -> AttemptRecord:
        if timestamp is None:
            timestamp = datetime.now().isoformat(sep=" ", timespec="seconds")
        record = AttemptRecord(timestamp, total, total - incorrect, incorrect)
        self.attempts.append(record)
        logger.info(f"Final run recorded: {record.correct}/{record.total}")
        return record

    # --- export / import ---

    def to_dict(self) -> dict:
        return {
            "attempts": [a.to_dict() for a in self.attempts],
            WRONG_COUNTS_KEY: {str(k): v for k, v in self.wrong_counts.items()},
            LEARN_PROGRESS_KEY: {str(k): dict(v) for k, v in self.learn_progress.items()},
        }

    def export_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)

    def import_json(self, blob: str):
        """Apply the sections present in ``blob``; absent sections stay as they are.

        Everything is validated before anything is applied, so a bad document
        leaves the store unchanged.
        """
        try:
            data = json.loads(blob)
        except (json.JSONDecodeError, TypeError) as e:
            raise MalformedPersistedData(f"Stats file is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise MalformedPersistedData("Stats file must contain a JSON object")

        # a null section counts as absent
        attempts = wrong_counts = learn_progress = None
        if data.get("attempts") is not None:
            attempts = parse_attempts(data["attempts"])
        if data.get(WRONG_COUNTS_KEY) is not None:
            wrong_counts = parse_wrong_counts(data[WRONG_COUNTS_KEY])
        if data.get(LEARN_PROGRESS_KEY) is not None:
            learn_progress = parse_learn_progress(data[LEARN_PROGRESS_KEY])

        if attempts is not None:
            self.attempts = attempts
        if wrong_counts is not None:
            self.wrong_counts = wrong_counts
            self._save_wrong_counts()
        if learn_progress is not None:
            self.learn_progress = learn_progress
            self._save_learn_progress()
        logger.info(f"Imported stats sections: {sorted(k for k, v in data.items() if v is not None)}")

    def reset(self, include_learn_progress: bool = False):
        self.attempts = []
        self.wrong_counts = {}
        self.storage.delete(WRONG_COUNTS_KEY)
        if include_learn_progress:
            self.learn_progress = {}
            self.storage.delete(LEARN_PROGRESS_KEY)
        logger.info("Statistics reset")
