import json
import logging
from typing import Optional

from fastapi import APIRouter, Header, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.concurrency import run_in_threadpool

from schoolhub.db.db_factory import StoreFactory
from schoolhub.db.store_interface import AuthGateway, RemoteStore
from schoolhub.exceptions import (
    AuthIdentityCreationFailed,
    ConfigurationError,
    Forbidden,
    NotAuthenticated,
    PartialProvisioningFailure,
    ProfileNotFound,
    RecordNotFound,
    SchoolHubError,
    StoreReadError,
    StoreWriteError,
    ValidationError,
)
from schoolhub.models.schemas import AttemptAnswersRequest, MarkedAnswersRequest, ProfileSyncRequest, TotalScoreRequest
from schoolhub.services.authorization_service import AuthorizationGuard
from schoolhub.services.marking_service import MarkingService
from schoolhub.services.provisioning_service import TeacherProvisioningService

logger = logging.getLogger(__name__)

router = APIRouter()

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}

# Most specific classes first; the first isinstance match wins
EXCEPTION_STATUS = [
    (ValidationError, 400),
    (NotAuthenticated, 401),
    (ProfileNotFound, 403),
    (Forbidden, 403),
    (RecordNotFound, 404),
    (PartialProvisioningFailure, 500),
    (AuthIdentityCreationFailed, 500),
    (StoreWriteError, 500),
    (StoreReadError, 500),
    (ConfigurationError, 500),
]

MARKING_ROLES = ["school_admin", "teacher"]


def get_store() -> RemoteStore:
    return StoreFactory.get_store()


def get_auth() -> AuthGateway:
    return StoreFactory.get_auth()


def status_for(error: SchoolHubError) -> int:
    for error_class, status_code in EXCEPTION_STATUS:
        if isinstance(error, error_class):
            return status_code
    return 500


def error_payload(error: SchoolHubError) -> dict:
    """JSON body for a failed call. A partial provisioning failure keeps the orphaned identity."""
    if isinstance(error, PartialProvisioningFailure):
        return {
            "error": "Teacher auth account created but profile sync failed",
            "message": error.message,
            "auth_user_id": error.auth_user_id,
            "email": error.email,
        }
    payload = {"error": error.message}
    if isinstance(error, ValidationError):
        payload["field"] = error.field
    elif isinstance(error, StoreWriteError) and error.step:
        payload["step"] = error.step
    return payload


def error_response(error: SchoolHubError, headers: Optional[dict] = None) -> JSONResponse:
    status_code = status_for(error)
    if status_code >= 500:
        logger.error(f"{type(error).__name__}: {error.message} {error.details}")
    else:
        logger.info(f"{type(error).__name__}: {error.message}")
    return JSONResponse(status_code=status_code, content=error_payload(error), headers=headers)


async def schoolhub_error_handler(request: Request, error: SchoolHubError) -> JSONResponse:
    return error_response(error)


@router.options("/functions/admin-create-teacher")
async def admin_create_teacher_preflight():
    return PlainTextResponse("ok", headers=CORS_HEADERS)


@router.api_route("/functions/admin-create-teacher", methods=["GET", "HEAD", "PUT", "PATCH", "DELETE"])
async def admin_create_teacher_wrong_method():
    return JSONResponse(status_code=405, content={"error": "Use POST"}, headers=CORS_HEADERS)


@router.post("/functions/admin-create-teacher")
async def admin_create_teacher(request: Request, authorization: Optional[str] = Header(None)):
    """
    Create a teacher account (auth identity plus profile row) in the caller's school.
    The caller must be a school admin.
    """
    if not authorization:
        return JSONResponse(status_code=401, content={"error": "Missing Authorization header"}, headers=CORS_HEADERS)

    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return JSONResponse(status_code=400, content={"error": "Invalid JSON body"}, headers=CORS_HEADERS)

    try:
        service = TeacherProvisioningService(get_store(), get_auth())
        result = await run_in_threadpool(service.provision_teacher, authorization, body)
    except SchoolHubError as e:
        return error_response(e, headers=CORS_HEADERS)
    except Exception as e:
        logger.exception("admin-create-teacher error")
        return JSONResponse(
            status_code=500,
            content={"error": "Unhandled function error", "message": str(e)},
            headers=CORS_HEADERS,
        )

    return JSONResponse(content=result.model_dump(mode="json"), headers=CORS_HEADERS)


@router.post("/teachers/{auth_user_id}/profile-sync")
def resync_teacher_profile(
    auth_user_id: str,
    payload: ProfileSyncRequest,
    authorization: Optional[str] = Header(None),
):
    """Re-create the profile row of a teacher whose provisioning stopped after identity creation."""
    try:
        profile = TeacherProvisioningService(get_store(), get_auth()).resync_teacher_profile(
            authorization, auth_user_id, payload.model_dump()
        )
    except SchoolHubError as e:
        return error_response(e)
    return {"ok": True, "auth_user_id": auth_user_id, "profile": profile.model_dump(mode="json")}


@router.get("/teachers")
def list_teachers(
    authorization: Optional[str] = Header(None),
):
    try:
        teachers = TeacherProvisioningService(get_store(), get_auth()).list_teachers(authorization)
    except SchoolHubError as e:
        return error_response(e)
    return {"teachers": [teacher.model_dump(mode="json") for teacher in teachers]}


@router.put("/teachers/{teacher_id}")
def update_teacher(
    teacher_id: str,
    payload: ProfileSyncRequest,
    authorization: Optional[str] = Header(None),
):
    try:
        profile = TeacherProvisioningService(get_store(), get_auth()).update_teacher(
            authorization, teacher_id, payload.model_dump()
        )
    except SchoolHubError as e:
        return error_response(e)
    return profile.model_dump(mode="json")


@router.get("/tests/{test_id}/attempts")
def list_attempts(
    test_id: str,
    authorization: Optional[str] = Header(None),
):
    try:
        profile = AuthorizationGuard(get_store(), get_auth()).require_role(authorization, MARKING_ROLES)
        attempts = MarkingService(get_store()).list_attempts(profile, test_id)
    except SchoolHubError as e:
        return error_response(e)
    return {"attempts": [attempt.model_dump(mode="json") for attempt in attempts]}


@router.post("/tests/{test_id}/attempts/{student_id}/answers")
def submit_marked_answers(
    test_id: str,
    student_id: str,
    payload: MarkedAnswersRequest,
    authorization: Optional[str] = Header(None),
):
    """Score selected answers and replace the student's attempt with them."""
    try:
        profile = AuthorizationGuard(get_store(), get_auth()).require_role(authorization, MARKING_ROLES)
        attempt, answers = MarkingService(get_store()).submit_answers(profile, test_id, student_id, payload.answers)
    except SchoolHubError as e:
        return error_response(e)
    return {
        "attempt": attempt.model_dump(mode="json"),
        "answers": [answer.model_dump(mode="json") for answer in answers],
    }


@router.put("/tests/{test_id}/attempts/{student_id}/score")
def record_total_score(
    test_id: str,
    student_id: str,
    payload: TotalScoreRequest,
    authorization: Optional[str] = Header(None),
):
    try:
        profile = AuthorizationGuard(get_store(), get_auth()).require_role(authorization, MARKING_ROLES)
        attempt = MarkingService(get_store()).record_total_score(profile, test_id, student_id, payload.total_score)
    except SchoolHubError as e:
        return error_response(e)
    return attempt.model_dump(mode="json")


@router.get("/attempts/{attempt_id}/answers")
def get_attempt_answers(
    attempt_id: str,
    authorization: Optional[str] = Header(None),
):
    try:
        profile = AuthorizationGuard(get_store(), get_auth()).require_role(authorization, MARKING_ROLES)
        answers = MarkingService(get_store()).get_answers(profile, attempt_id)
    except SchoolHubError as e:
        return error_response(e)
    return {"answers": [answer.model_dump(mode="json") for answer in answers]}


@router.put("/attempts/{attempt_id}/answers")
def replace_attempt_answers(
    attempt_id: str,
    payload: AttemptAnswersRequest,
    authorization: Optional[str] = Header(None),
):
    """Replace the full answer set of an attempt. Answers not listed are removed."""
    try:
        profile = AuthorizationGuard(get_store(), get_auth()).require_role(authorization, MARKING_ROLES)
        answers = MarkingService(get_store()).replace_answers(profile, attempt_id, payload.answers)
    except SchoolHubError as e:
        return error_response(e)
    return {"answers": [answer.model_dump(mode="json") for answer in answers]}


@router.patch("/attempts/{attempt_id}/answers")
def upsert_attempt_answers(
    attempt_id: str,
    payload: AttemptAnswersRequest,
    authorization: Optional[str] = Header(None),
):
    """Add or update answers of an attempt, keeping answers not listed."""
    try:
        profile = AuthorizationGuard(get_store(), get_auth()).require_role(authorization, MARKING_ROLES)
        answers = MarkingService(get_store()).upsert_answers(profile, attempt_id, payload.answers)
    except SchoolHubError as e:
        return error_response(e)
    return {"answers": [answer.model_dump(mode="json") for answer in answers]}
