"""
Unit tests for attempt answer reconciliation (full replacement and upsert-only).
"""
import pytest
from schoolhub.exceptions import StoreWriteError
from schoolhub.models.schemas import AnswerInput
from schoolhub.repositories import attempt_repository


def answers_for(*question_ids, score=1):
    return [AnswerInput(question_id=qid, answer_text="A", is_correct=True, score=score) for qid in question_ids]


def stored_questions(store, attempt_id):
    return {row["question_id"] for row in store.rows("attempt_answers") if row["attempt_id"] == attempt_id}


class TestReplaceAttemptAnswers:
    """Delete-then-upsert replacement of an attempt's answer set."""

    def test_exact_replacement_removes_stale_answers(self, store):
        attempt_repository.replace_attempt_answers(store, "a1", answers_for("Q1", "Q2", "Q3"))

        result = attempt_repository.replace_attempt_answers(store, "a1", answers_for("Q1", "Q4"))

        assert {answer.question_id for answer in result} == {"Q1", "Q4"}
        assert stored_questions(store, "a1") == {"Q1", "Q4"}

    def test_replacing_twice_is_idempotent(self, store):
        answers = answers_for("Q1", "Q2")
        attempt_repository.replace_attempt_answers(store, "a1", answers)
        once = sorted((row["question_id"], row["score"]) for row in store.rows("attempt_answers"))
        attempt_repository.replace_attempt_answers(store, "a1", answers)
        twice = sorted((row["question_id"], row["score"]) for row in store.rows("attempt_answers"))

        assert once == twice == [("Q1", 1), ("Q2", 1)]

    def test_empty_list_clears_attempt(self, store):
        attempt_repository.replace_attempt_answers(store, "a1", answers_for("Q1", "Q2"))

        result = attempt_repository.replace_attempt_answers(store, "a1", [])

        assert result == []
        assert stored_questions(store, "a1") == set()

    def test_empty_list_on_empty_attempt_is_a_no_op(self, store):
        assert attempt_repository.replace_attempt_answers(store, "a1", []) == []
        assert store.calls["delete"] == 1
        assert store.calls["upsert"] == 0

    def test_every_row_is_tagged_with_the_attempt(self, store):
        result = attempt_repository.replace_attempt_answers(store, "a1", answers_for("Q1", "Q2"))
        assert all(answer.attempt_id == "a1" for answer in result)

    def test_other_attempts_are_untouched(self, store):
        attempt_repository.replace_attempt_answers(store, "a1", answers_for("Q1"))
        attempt_repository.replace_attempt_answers(store, "a2", answers_for("Q1", "Q2"))

        attempt_repository.replace_attempt_answers(store, "a1", [])

        assert stored_questions(store, "a2") == {"Q1", "Q2"}

    def test_delete_failure_aborts_before_upsert(self, store):
        attempt_repository.replace_attempt_answers(store, "a1", answers_for("Q1", "Q2"))
        store.fail_next("delete", "attempt_answers", "network unreachable")
        upserts_before = store.calls["upsert"]

        with pytest.raises(StoreWriteError) as exc_info:
            attempt_repository.replace_attempt_answers(store, "a1", answers_for("Q3"))

        assert exc_info.value.step == "delete_answers"
        assert exc_info.value.message == "network unreachable"
        assert store.calls["upsert"] == upserts_before
        assert stored_questions(store, "a1") == {"Q1", "Q2"}

    def test_upsert_failure_leaves_attempt_empty_and_retry_recovers(self, store):
        attempt_repository.replace_attempt_answers(store, "a1", answers_for("Q1", "Q2"))
        store.fail_next("upsert", "attempt_answers", "duplicate key value violates unique constraint")

        with pytest.raises(StoreWriteError) as exc_info:
            attempt_repository.replace_attempt_answers(store, "a1", answers_for("Q2", "Q3"))

        assert exc_info.value.step == "upsert_answers"
        assert stored_questions(store, "a1") == set()

        attempt_repository.replace_attempt_answers(store, "a1", answers_for("Q2", "Q3"))
        assert stored_questions(store, "a1") == {"Q2", "Q3"}

    def test_duplicate_question_leaves_stored_answers_untouched(self, store):
        attempt_repository.replace_attempt_answers(store, "a1", answers_for("Q1", "Q2"))
        deletes_before = store.calls["delete"]
        duplicated = [
            AnswerInput(question_id="Q1", answer_text="A"),
            AnswerInput(question_id="Q1", answer_text="B"),
        ]

        with pytest.raises(ValueError, match="share conflict key"):
            attempt_repository.replace_attempt_answers(store, "a1", duplicated)

        assert store.calls["delete"] == deletes_before
        assert stored_questions(store, "a1") == {"Q1", "Q2"}


class TestUpsertAttemptAnswers:
    """Incremental upsert without clearing stale answers."""

    def test_keeps_answers_not_listed(self, store):
        attempt_repository.replace_attempt_answers(store, "a1", answers_for("Q1", "Q2"))

        attempt_repository.upsert_attempt_answers(store, "a1", answers_for("Q2", "Q3", score=5))

        assert stored_questions(store, "a1") == {"Q1", "Q2", "Q3"}
        scores = {row["question_id"]: row["score"] for row in store.rows("attempt_answers")}
        assert scores == {"Q1": 1, "Q2": 5, "Q3": 5}
        assert store.calls["delete"] == 1


class TestAttempts:
    """Attempt rows keyed on (test_id, student_id)."""

    def test_upsert_attempt_reuses_row_for_same_student(self, store):
        first = attempt_repository.upsert_attempt(store, "t1", "s1", 4)
        second = attempt_repository.upsert_attempt(store, "t1", "s1", 7)

        assert first.id == second.id
        assert second.total_score == 7
        assert len(store.rows("attempts")) == 1

    def test_upsert_attempt_failure_names_step(self, store):
        store.fail_next("upsert", "attempts")

        with pytest.raises(StoreWriteError) as exc_info:
            attempt_repository.upsert_attempt(store, "t1", "s1", 4)

        assert exc_info.value.step == "upsert_attempt"

    def test_list_attempts_by_test(self, store):
        store.seed("attempts", [
            {"id": "old", "test_id": "t1", "student_id": "s1", "total_score": 1,
             "submitted_at": "2026-01-01T08:00:00+00:00"},
            {"id": "new", "test_id": "t1", "student_id": "s2", "total_score": 2,
             "submitted_at": "2026-02-01T08:00:00+00:00"},
            {"id": "other", "test_id": "t2", "student_id": "s1", "total_score": 3,
             "submitted_at": "2026-03-01T08:00:00+00:00"},
        ])

        attempts = attempt_repository.list_attempts_by_test(store, "t1")

        assert [attempt.id for attempt in attempts] == ["new", "old"]
