"""
Marking Service
Scores paper-marked answers and stores them as a student's attempt on a test.
"""
import logging
from typing import Dict, List, Sequence, Tuple

from schoolhub.db.store_interface import RemoteStore
from schoolhub.exceptions import RecordNotFound, ValidationError
from schoolhub.models.schemas import (
    AnswerInput,
    Attempt,
    AttemptAnswer,
    TestQuestion,
    UserProfile,
)
from schoolhub.repositories import attempt_repository

logger = logging.getLogger(__name__)

TESTS_TABLE = "tests"
TEST_QUESTIONS_TABLE = "test_questions"
QUESTIONS_TABLE = "questions"


def check_unique_questions(answers: Sequence[AnswerInput]) -> None:
    """An attempt holds one answer per question."""
    seen = set()
    for answer in answers:
        if answer.question_id in seen:
            raise ValidationError("answers", f"Duplicate answer for question {answer.question_id}")
        seen.add(answer.question_id)


def score_answers(test_questions: Sequence[TestQuestion],
                  selected: Dict[str, str]) -> Tuple[List[AnswerInput], float]:
    """
    Score selected answers against a test's questions.

    A question scores its marks when the selected answer equals its correct
    answer, and 0 otherwise. Questions without a selected answer are left out of
    the answer set; selections for questions not on the test are ignored.

    Returns:
        The answers to store, in test order, and their total score
    """
    answers = []
    for question in test_questions:
        chosen = selected.get(question.question_id) or ""
        if not chosen:
            continue
        is_correct = chosen == (question.correct_answer or "")
        answers.append(AnswerInput(
            question_id=question.question_id,
            answer_text=chosen,
            is_correct=is_correct,
            score=question.marks if is_correct else 0,
        ))
    return answers, sum(answer.score for answer in answers)


class MarkingService:
    """Attempt writes for a test, scoped to the caller's school."""

    def __init__(self, store: RemoteStore):
        self.store = store

    def _load_test(self, test_id: str, profile: UserProfile) -> dict:
        rows = self.store.select(TESTS_TABLE, {"id": test_id, "school_id": profile.school_id})
        if not rows:
            raise RecordNotFound("Test not found", {"test_id": test_id})
        return rows[0]

    def _load_attempt(self, attempt_id: str, profile: UserProfile) -> Attempt:
        rows = self.store.select(attempt_repository.ATTEMPTS_TABLE, {"id": attempt_id})
        if not rows:
            raise RecordNotFound("Attempt not found", {"attempt_id": attempt_id})
        attempt = Attempt(**rows[0])
        self._load_test(attempt.test_id, profile)
        return attempt

    def list_test_questions(self, test_id: str) -> List[TestQuestion]:
        """Questions of a test in paper order, with each question's correct answer."""
        links = self.store.select(TEST_QUESTIONS_TABLE, {"test_id": test_id}, order_by="order_no")
        if not links:
            return []
        questions = self.store.select(QUESTIONS_TABLE, {"id": [link["question_id"] for link in links]})
        correct = {question["id"]: question.get("correct_answer") for question in questions}
        return [
            TestQuestion(**link, correct_answer=correct.get(link["question_id"]))
            for link in links
        ]

    def submit_answers(self, profile: UserProfile, test_id: str, student_id: str,
                       selected: Dict[str, str]) -> Tuple[Attempt, List[AttemptAnswer]]:
        """
        Score the selected answers, store the total on the attempt, then replace
        the attempt's answers with the scored set.

        A failure after the attempt upsert leaves its total updated; the answer
        replacement is safe to repeat by resubmitting.
        """
        self._load_test(test_id, profile)
        test_questions = self.list_test_questions(test_id)
        answers, total = score_answers(test_questions, selected)

        attempt = attempt_repository.upsert_attempt(self.store, test_id, student_id, total)
        stored = attempt_repository.replace_attempt_answers(self.store, attempt.id, answers)
        logger.info(f"Marked attempt {attempt.id} for student {student_id}: {len(stored)} answers, total {total}")
        return attempt, stored

    def record_total_score(self, profile: UserProfile, test_id: str, student_id: str,
                           total_score: float) -> Attempt:
        """Store a total score without answer detail; it may not exceed the test's total marks."""
        test = self._load_test(test_id, profile)
        max_score = float(test.get("total_marks") or 0)
        if total_score < 0:
            raise ValidationError("total_score", "Score cannot be negative")
        if max_score > 0 and total_score > max_score:
            raise ValidationError("total_score", f"Score exceeds {max_score:g}")
        return attempt_repository.upsert_attempt(self.store, test_id, student_id, total_score)

    def list_attempts(self, profile: UserProfile, test_id: str) -> List[Attempt]:
        self._load_test(test_id, profile)
        return attempt_repository.list_attempts_by_test(self.store, test_id)

    def get_answers(self, profile: UserProfile, attempt_id: str) -> List[AttemptAnswer]:
        self._load_attempt(attempt_id, profile)
        return attempt_repository.get_attempt_answers(self.store, attempt_id)

    def replace_answers(self, profile: UserProfile, attempt_id: str,
                        answers: Sequence[AnswerInput]) -> List[AttemptAnswer]:
        check_unique_questions(answers)
        self._load_attempt(attempt_id, profile)
        return attempt_repository.replace_attempt_answers(self.store, attempt_id, answers)

    def upsert_answers(self, profile: UserProfile, attempt_id: str,
                       answers: Sequence[AnswerInput]) -> List[AttemptAnswer]:
        check_unique_questions(answers)
        self._load_attempt(attempt_id, profile)
        return attempt_repository.upsert_attempt_answers(self.store, attempt_id, answers)
