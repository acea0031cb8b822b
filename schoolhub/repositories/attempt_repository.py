"""
Attempt and answer persistence.

replace_attempt_answers is the full-replacement reconciliation: delete every
stored answer of the attempt, then upsert the new set. The two calls are issued
in that order and never merged, so a failure between them is observable: the
attempt is left with no answers and the caller retries the whole flow, which is
safe because both steps are idempotent.
"""
import logging
from datetime import datetime, UTC
from typing import List, Sequence
from schoolhub.db.store_interface import RemoteStore
from schoolhub.exceptions import StoreWriteError
from schoolhub.models.schemas import AnswerInput, Attempt, AttemptAnswer
from schoolhub.repositories.upsert import check_batch, upsert_by_conflict_key

logger = logging.getLogger(__name__)

ATTEMPTS_TABLE = "attempts"
ANSWERS_TABLE = "attempt_answers"
ATTEMPT_KEY = ("test_id", "student_id")
ANSWER_KEY = ("attempt_id", "question_id")


def _answer_rows(attempt_id: str, answers: Sequence[AnswerInput]) -> List[dict]:
    return [{**answer.model_dump(), "attempt_id": attempt_id} for answer in answers]


def upsert_attempt_answers(store: RemoteStore, attempt_id: str,
                           answers: Sequence[AnswerInput]) -> List[AttemptAnswer]:
    """
    Upsert answers for an attempt without removing any stored answer.

    Only for incremental updates; answers for questions not in `answers` survive.
    """
    try:
        written = upsert_by_conflict_key(store, ANSWERS_TABLE, _answer_rows(attempt_id, answers), ANSWER_KEY)
    except StoreWriteError as e:
        raise StoreWriteError(e.message, step="upsert_answers", table=ANSWERS_TABLE,
                              details={"attempt_id": attempt_id}) from e

    logger.debug(f"Upserted {len(written)} answers for attempt {attempt_id}")
    return [AttemptAnswer(**row) for row in written]


def replace_attempt_answers(store: RemoteStore, attempt_id: str,
                            answers: Sequence[AnswerInput]) -> List[AttemptAnswer]:
    """
    Make the stored answers of `attempt_id` exactly equal `answers`.

    Raises:
        ValueError: If two answers share a question (checked before the delete)
        StoreWriteError: step "delete_answers" if the clearing delete failed (nothing
            changed), step "upsert_answers" if the insert failed (attempt now has no
            answers; retry the whole call)
    """
    rows = _answer_rows(attempt_id, answers)
    check_batch(ANSWERS_TABLE, rows, ANSWER_KEY)

    try:
        store.delete(ANSWERS_TABLE, {"attempt_id": attempt_id})
    except StoreWriteError as e:
        logger.error(f"Could not clear answers for attempt {attempt_id}: {e.message}")
        raise StoreWriteError(e.message, step="delete_answers", table=ANSWERS_TABLE,
                              details={"attempt_id": attempt_id}) from e

    if not answers:
        logger.info(f"Attempt {attempt_id} reconciled to an empty answer set")
        return []

    try:
        replaced = upsert_attempt_answers(store, attempt_id, answers)
    except StoreWriteError:
        logger.error(f"Attempt {attempt_id} left with no answers after a failed upsert; retry the replacement")
        raise

    logger.info(f"Attempt {attempt_id} reconciled to {len(replaced)} answers")
    return replaced


def upsert_attempt(store: RemoteStore, test_id: str, student_id: str, total_score: float) -> Attempt:
    """Create or update the single attempt of a student on a test."""
    row = {
        "test_id": test_id,
        "student_id": student_id,
        "total_score": total_score,
        "submitted_at": datetime.now(UTC).isoformat(),
    }
    try:
        written = upsert_by_conflict_key(store, ATTEMPTS_TABLE, [row], ATTEMPT_KEY)
    except StoreWriteError as e:
        raise StoreWriteError(e.message, step="upsert_attempt", table=ATTEMPTS_TABLE,
                              details={"test_id": test_id, "student_id": student_id}) from e

    if not written:
        raise StoreWriteError("Attempt upsert returned no row", step="upsert_attempt", table=ATTEMPTS_TABLE)
    return Attempt(**written[0])


def list_attempts_by_test(store: RemoteStore, test_id: str) -> List[Attempt]:
    rows = store.select(ATTEMPTS_TABLE, {"test_id": test_id}, order_by="submitted_at", desc=True)
    return [Attempt(**row) for row in rows]


def get_attempt_answers(store: RemoteStore, attempt_id: str) -> List[AttemptAnswer]:
    rows = store.select(ANSWERS_TABLE, {"attempt_id": attempt_id})
    return [AttemptAnswer(**row) for row in rows]
