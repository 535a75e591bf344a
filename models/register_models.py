"""Models for the attendance register, share snapshots and chat"""
from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List, Dict, Literal
from datetime import datetime, timezone
import uuid

SCHEMA_VERSION = 2
TEACHER_ID = "teacher"

AttendanceStatus = Literal["P", "A"]
PRESENT: AttendanceStatus = "P"
ABSENT: AttendanceStatus = "A"

# day of month -> status; a missing day is Unmarked
AttendanceRecord = Dict[int, AttendanceStatus]
# student id -> record
ClassAttendance = Dict[str, AttendanceRecord]


def now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


class WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


# ==================== ROSTER MODELS ====================

class Student(WireModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    roll_no: str


SAMPLE_STUDENTS = [
    {"id": "1", "name": "Aarav Patel", "roll_no": "01"},
    {"id": "2", "name": "Bianca Rossi", "roll_no": "02"},
    {"id": "3", "name": "Charlie Davis", "roll_no": "03"},
    {"id": "4", "name": "Diya Sharma", "roll_no": "04"},
    {"id": "5", "name": "Ethan Hunt", "roll_no": "05"},
]


# ==================== CHAT MODELS ====================

class ChatMessage(WireModel):
    model_config = ConfigDict(frozen=True)
    id: str
    sender_id: str = Field(min_length=1)
    sender_name: str
    content: str = ""
    timestamp: int = Field(default_factory=now_ms)
    type: Literal["text", "image", "file"] = "text"
    file_url: Optional[str] = None  # data URL for small uploads
    file_name: Optional[str] = None


# ==================== CLASS MODELS ====================

class AttendanceStats(BaseModel):
    presents: int = 0
    absents: int = 0


class SchoolClass(WireModel):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    created_at: int = Field(default_factory=now_ms)
    students: List[Student] = Field(default_factory=list)
    attendance: Dict[str, ClassAttendance] = Field(default_factory=dict)
    holidays: Dict[str, List[int]] = Field(default_factory=dict)
    share_code: Optional[str] = None
    messages: List[ChatMessage] = Field(default_factory=list)
    is_chat_locked: bool = False
    schema_version: int = 1  # snapshots written before versioning carry no tag

    @field_validator("attendance", mode="before")
    @classmethod
    def drop_unmarked(cls, value):
        # Older registers stored null for a cell cycled back to Unmarked
        if not isinstance(value, dict):
            return value
        cleaned = {}
        for month, per_student in value.items():
            if not isinstance(per_student, dict):
                cleaned[month] = per_student
                continue
            cleaned[month] = {
                student_id: (
                    {day: status for day, status in record.items() if status is not None}
                    if isinstance(record, dict) else record
                )
                for student_id, record in per_student.items()
            }
        return cleaned

    @field_validator("holidays", "messages", "attendance", mode="before")
    @classmethod
    def default_when_null(cls, value, info):
        if value is None:
            return [] if info.field_name == "messages" else {}
        return value

    @field_validator("is_chat_locked", mode="before")
    @classmethod
    def lock_default(cls, value):
        return False if value is None else value


class ClassSnapshot(SchoolClass):
    """A class as stored in the share registry"""
    shared_at: Optional[int] = Field(default=None, alias="_sharedAt")


class SavedCode(WireModel):
    code: str
    name: str


# ==================== REQUEST MODELS ====================

class SendMessageRequest(WireModel):
    code: str = Field(min_length=1)
    message: ChatMessage


class DeleteMessageRequest(WireModel):
    code: str = Field(min_length=1)
    message_id: str = Field(min_length=1)
    sender_id: str = Field(min_length=1)


class ToggleLockRequest(WireModel):
    code: str = Field(min_length=1)
    is_locked: bool
    sender_id: str = Field(min_length=1)


class LoginRequest(BaseModel):
    password: str = Field(min_length=1)
