"""Tests for the Tutor console driver."""
import json
import random

import pytest
from unittest.mock import MagicMock, patch
from quiz_drill.progress_store import ProgressStore
from quiz_drill.question_pool import QuestionPool
from quiz_drill.session import (
    FINAL, LEARN, MENU, QUIZ, SCREEN_BLOCK_SELECT, SCREEN_MENU, QuizSession,
)
from quiz_drill.storage import MemoryStorage
from quiz_drill.tutor import Tutor, main


SAMPLE_QUESTIONS = [
    {"question": f"Question {i}?", "options": ["w", "x", "y", "z"], "answer": i % 4}
    for i in range(12)
]

MENU_FINAL = "1"
MENU_QUIZ_10 = "2"
MENU_LEARN = "7"
MENU_EXPORT = "8"
MENU_IMPORT = "9"
MENU_RESET = "10"
MENU_QUIT = "11"


@pytest.fixture
def tutor():
    pool = QuestionPool(SAMPLE_QUESTIONS)
    session = QuizSession(pool, ProgressStore(MemoryStorage()).load(),
                          block_size=5, rng=random.Random(3))
    tutor_obj = Tutor(session)
    tutor_obj.speak = MagicMock()
    return tutor_obj


def spoken(tutor):
    return " ".join(str(c.args[0]) for c in tutor.speak.call_args_list)


def correct_choice(tutor):
    return str(tutor.session.current_question.key.index + 1)


def wrong_choice(tutor):
    return str((tutor.session.current_question.key.index + 1) % 4 + 1)


# --- handle_special_commands ---

def test_handle_quit_command(tutor):
    assert tutor.handle_special_commands("quit") == "quit"
    assert tutor.handle_special_commands("exit") == "quit"


def test_handle_menu_command(tutor):
    assert tutor.handle_special_commands("menu") == "menu"
    assert tutor.handle_special_commands("restart") == "menu"


def test_handle_back_command(tutor):
    assert tutor.handle_special_commands("back") == "back"


def test_handle_no_command(tutor):
    assert tutor.handle_special_commands("2") is None
    assert tutor.handle_special_commands("quite a lot") is None


def test_handle_command_case_and_punctuation(tutor):
    assert tutor.handle_special_commands("QUIT.") == "quit"
    assert tutor.handle_special_commands("Menu!") == "menu"


# --- menu ---

def test_menu_lists_options(tutor):
    labels = [label for label, _ in tutor.menu_options()]
    assert labels[0].startswith("Final run")
    assert "10 questions" in labels
    assert labels[-1] == "Quit"
    assert len(labels) == int(MENU_QUIT)


def test_menu_starts_final_run(tutor):
    tutor.listen = MagicMock(return_value=MENU_FINAL)
    tutor.step()
    assert tutor.session.mode == FINAL


def test_menu_starts_limited_quiz(tutor):
    tutor.listen = MagicMock(return_value=MENU_QUIZ_10)
    tutor.step()
    assert tutor.session.mode == QUIZ
    assert len(tutor.session.working_set) == 10


def test_menu_rejects_garbage(tutor):
    tutor.listen = MagicMock(return_value="banana")
    tutor.step()
    assert tutor.session.mode == MENU
    tutor.speak.assert_any_call("Please enter a number from the menu.")


def test_menu_shows_attempt_history(tutor):
    tutor.session.progress.record_attempt(10, 1, timestamp="yesterday")
    tutor.listen = MagicMock(return_value="banana")
    tutor.step()
    assert "yesterday: 9/10 (90%)" in spoken(tutor)


# --- questions ---

def test_question_answer_and_advance(tutor):
    tutor.session.select_mode(FINAL)
    tutor.listen = MagicMock(side_effect=[correct_choice(tutor), ""])
    tutor.step()
    assert tutor.session.position == 1
    assert tutor.session.progress.wrong_counts == {}


def test_question_wrong_answer_counts(tutor):
    tutor.session.select_mode(FINAL)
    tutor.listen = MagicMock(side_effect=[wrong_choice(tutor), ""])
    tutor.step()
    assert tutor.session.progress.wrong_count(0) == 1
    assert "The correct answer is" in spoken(tutor)


def test_question_out_of_range_option(tutor):
    tutor.session.select_mode(FINAL)
    tutor.listen = MagicMock(return_value="9")
    tutor.step()
    assert not tutor.session.submitted
    tutor.speak.assert_any_call("Options are numbered 1 to 4.")


def test_question_menu_command_restarts(tutor):
    tutor.session.select_mode(FINAL)
    tutor.listen = MagicMock(return_value="menu")
    tutor.step()
    assert tutor.session.screen == SCREEN_MENU


def test_quit_after_feedback_does_not_advance(tutor):
    tutor.session.select_mode(FINAL)
    tutor.listen = MagicMock(side_effect=[correct_choice(tutor), "quit"])
    tutor._running = True
    tutor.step()
    assert tutor._running is False
    assert tutor.session.submitted
    assert tutor.session.position == 0


def test_summary_returns_to_menu(tutor):
    tutor.session.select_mode(QUIZ, limit=1)
    tutor.listen = MagicMock(side_effect=[correct_choice(tutor), "", ""])
    tutor.step()
    assert tutor.session.completed
    tutor.step()
    assert tutor.session.screen == SCREEN_MENU
    assert "Quiz complete" in spoken(tutor)


# --- learn mode ---

def test_block_list_choose_and_back(tutor):
    tutor.session.select_mode(LEARN)
    tutor.listen = MagicMock(side_effect=["2", "back"])
    tutor.step()
    assert tutor.session.selected_block == 1
    tutor.step()
    assert tutor.session.screen == SCREEN_BLOCK_SELECT


def test_block_size_command(tutor):
    tutor.session.select_mode(LEARN)
    tutor.listen = MagicMock(return_value="size 10")
    tutor.step()
    assert tutor.session.block_size == 10


def test_illegal_command_is_reported_not_raised(tutor):
    tutor.session.select_mode(LEARN)
    tutor.listen = MagicMock(return_value="9")
    tutor.step()
    assert tutor.session.screen == SCREEN_BLOCK_SELECT
    assert "Can't do that" in spoken(tutor)


# --- statistics files ---

def test_export_and_import(tutor, tmp_path):
    path = tmp_path / "stats.json"
    tutor.session.progress.record_wrong(3)
    tutor.listen = MagicMock(side_effect=[MENU_EXPORT, str(path)])
    tutor.step()
    assert json.loads(path.read_text())["wrongCounts"] == {"3": 1}

    path.write_text(json.dumps({"wrongCounts": {"5": 2}}))
    tutor.listen = MagicMock(side_effect=[MENU_IMPORT, str(path)])
    tutor.step()
    assert tutor.session.progress.wrong_counts == {5: 2}


def test_import_malformed_file_keeps_state(tutor, tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{oops")
    tutor.session.progress.record_wrong(1)
    tutor.listen = MagicMock(side_effect=[MENU_IMPORT, str(path)])
    tutor.step()
    assert tutor.session.progress.wrong_counts == {1: 1}
    assert "Error reading file" in spoken(tutor)


def test_import_missing_file(tutor, tmp_path):
    tutor.listen = MagicMock(side_effect=[MENU_IMPORT, str(tmp_path / "nope.json")])
    tutor.step()
    assert "Error reading file" in spoken(tutor)


def test_reset_needs_confirmation(tutor):
    tutor.session.progress.record_wrong(1)
    tutor.listen = MagicMock(side_effect=[MENU_RESET, "n"])
    tutor.step()
    assert tutor.session.progress.wrong_counts == {1: 1}
    tutor.listen = MagicMock(side_effect=[MENU_RESET, "y"])
    tutor.step()
    assert tutor.session.progress.wrong_counts == {}


# --- run loop ---

def test_run_until_quit(tutor):
    tutor.listen = MagicMock(side_effect=[MENU_FINAL, "menu", MENU_QUIT])
    tutor.run()
    assert tutor.listen.call_count == 3
    tutor.speak.assert_any_call("Goodbye!")


def test_run_shows_storage_notices(tutor):
    tutor.session.progress.notices.append("Stored wrongCounts could not be read")
    tutor.listen = MagicMock(return_value="quit")
    tutor.run()
    assert "could not be read" in spoken(tutor)


# --- CLI ---

def test_main_runs_tutor(tmp_path):
    bank = tmp_path / "questions.json"
    bank.write_text(json.dumps(SAMPLE_QUESTIONS))
    with patch("quiz_drill.tutor.Tutor.run") as mock_run:
        code = main(["--config", str(tmp_path / "missing.yaml"),
                     "--questions", str(bank), "--no-persist", "--seed", "1"])
    assert code == 0
    mock_run.assert_called_once()


def test_main_reads_yaml_config(tmp_path):
    bank = tmp_path / "questions.json"
    bank.write_text(json.dumps(SAMPLE_QUESTIONS))
    config = tmp_path / "config.yaml"
    config.write_text(
        f"quiz:\n  questions: {bank}\n  block_size: 4\n"
        f"storage:\n  db_path: {tmp_path / 'stats.db'}\n"
    )
    with patch("quiz_drill.tutor.Tutor.run"):
        assert main(["--config", str(config)]) == 0
    assert (tmp_path / "stats.db").exists()


def test_main_rejects_bad_question_bank(tmp_path):
    bank = tmp_path / "questions.json"
    bank.write_text(json.dumps([{"question": "q", "options": ["only one"], "answer": 0}]))
    assert main(["--config", str(tmp_path / "none.yaml"),
                 "--questions", str(bank), "--no-persist"]) == 1


def test_main_missing_question_bank(tmp_path):
    assert main(["--config", str(tmp_path / "none.yaml"),
                 "--questions", str(tmp_path / "absent.json"), "--no-persist"]) == 1


# --- answered questions and cancelled prompts ---

def test_failed_navigation_after_answer_can_still_continue(tutor):
    tutor.session.select_mode(FINAL)
    tutor.listen = MagicMock(side_effect=[correct_choice(tutor), "back", ""])
    tutor.step()
    assert tutor.session.submitted
    assert "Can't do that" in spoken(tutor)

    tutor.step()
    assert tutor.session.position == 1
    assert not tutor.session.submitted
    assert tutor.listen.call_count == 3


def test_answered_question_shows_feedback_again(tutor):
    tutor.session.select_mode(FINAL)
    tutor.session.set_selection(tutor.session.current_question.key.index)
    tutor.session.submit()
    feedback = tutor.session.view().feedback
    tutor.listen = MagicMock(return_value="")
    tutor.step()
    tutor.speak.assert_any_call(feedback)
    assert tutor.session.position == 1


def test_export_cancelled_by_quit(tutor, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    tutor.listen = MagicMock(side_effect=[MENU_EXPORT, "quit"])
    tutor.step()
    assert list(tmp_path.iterdir()) == []
    tutor.speak.assert_any_call("Cancelled.")


def test_import_cancelled_by_quit(tutor):
    tutor.session.progress.record_wrong(2)
    tutor.listen = MagicMock(side_effect=[MENU_IMPORT, "quit"])
    tutor.step()
    assert tutor.session.progress.wrong_counts == {2: 1}
    assert "Error reading file" not in spoken(tutor)
    tutor.speak.assert_any_call("Cancelled.")


def test_main_survives_corrupt_database(tmp_path):
    bank = tmp_path / "questions.json"
    bank.write_text(json.dumps(SAMPLE_QUESTIONS))
    db_file = tmp_path / "stats.db"
    db_file.write_bytes(b"this is not a sqlite database\n" * 20)
    with patch("quiz_drill.tutor.Tutor.run") as mock_run:
        code = main(["--config", str(tmp_path / "none.yaml"),
                     "--questions", str(bank), "--db", str(db_file)])
    assert code == 0
    mock_run.assert_called_once()
