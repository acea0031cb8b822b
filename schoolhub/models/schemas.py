from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

UserRole = Literal["school_admin", "teacher"]


class Attempt(BaseModel):
    id: str
    test_id: str
    student_id: str
    total_score: float = 0
    submitted_at: Optional[datetime] = None


class AttemptAnswer(BaseModel):
    id: Optional[str] = None
    attempt_id: str
    question_id: str
    answer_text: Optional[str] = None
    is_correct: Optional[bool] = None
    score: float = 0


class AnswerInput(BaseModel):
    """One answer as submitted by a caller; attempt_id is supplied by the flow."""
    question_id: str
    answer_text: Optional[str] = None
    is_correct: Optional[bool] = None
    score: float = 0


class AttemptAnswersRequest(BaseModel):
    answers: List[AnswerInput] = Field(default_factory=list)


class TestQuestion(BaseModel):
    test_id: str
    question_id: str
    order_no: Optional[int] = None
    marks: float = 1
    correct_answer: Optional[str] = None


class MarkedAnswersRequest(BaseModel):
    # question_id -> selected answer text
    answers: Dict[str, str] = Field(default_factory=dict)


class TotalScoreRequest(BaseModel):
    total_score: float


class UserProfile(BaseModel):
    id: str
    school_id: str
    role: UserRole
    full_name: str
    phone: Optional[str] = None
    created_at: Optional[datetime] = None


class AuthIdentity(BaseModel):
    id: str
    email: Optional[str] = None
    user_metadata: Dict[str, Any] = Field(default_factory=dict)
    app_metadata: Dict[str, Any] = Field(default_factory=dict)


class TeacherProvisioningRequest(BaseModel):
    """Normalized provisioning input. Built only by validate_provisioning_request."""
    email: str
    password: str
    full_name: str
    phone: Optional[str] = None


class ProfileSyncRequest(BaseModel):
    full_name: str
    phone: Optional[str] = None


class ProvisioningResult(BaseModel):
    ok: bool = True
    auth_user_id: str
    email: str
    profile: UserProfile
