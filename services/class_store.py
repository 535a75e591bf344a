"""
Local class store.

Holds the classes this device created, the remembered share codes and the
device's viewer session id. State is loaded once when the store is opened and
written back to a JSON file after every mutation.
"""
import json
import logging
import os
import random
import string
import time
import uuid
from pathlib import Path
from typing import Callable, List, Optional, Union

from pydantic import ValidationError as SchemaValidationError

from models.register_models import (
    SchoolClass, Student, SavedCode, SAMPLE_STUDENTS, SCHEMA_VERSION, TEACHER_ID
)
from services import attendance_service
from services.errors import ImportValidationError, NotFound, ValidationError

logger = logging.getLogger(__name__)

CLASSES_KEY = "school_classes"
SAVED_CODES_KEY = "saved_student_codes"
SESSION_ID_KEY = "student_session_id"


def new_viewer_session_id() -> str:
    suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"student_{int(time.time() * 1000)}{suffix}"


class ClassStore:
    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.classes: List[SchoolClass] = []
        self.saved_codes: List[SavedCode] = []
        self._session_id: Optional[str] = None
        self.load()

    # ==================== LIFECYCLE ====================

    def load(self) -> None:
        """Read persisted state; a missing or unreadable file starts an empty store"""
        if not self.path.exists():
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading class store {self.path}: {str(e)}")
            return

        self.classes = []
        for raw in data.get(CLASSES_KEY) or []:
            try:
                self.classes.append(SchoolClass.model_validate(raw))
            except SchemaValidationError as e:
                logger.warning(f"Skipping unreadable stored class: {e.error_count()} errors")
        self.saved_codes = [SavedCode.model_validate(c) for c in data.get(SAVED_CODES_KEY) or []]
        self._session_id = data.get(SESSION_ID_KEY)

    def save(self) -> None:
        data = {
            CLASSES_KEY: [c.to_wire() for c in self.classes],
            SAVED_CODES_KEY: [c.to_wire() for c in self.saved_codes],
            SESSION_ID_KEY: self._session_id,
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        os.replace(tmp_path, self.path)

    # ==================== IDENTITY ====================

    @property
    def viewer_session_id(self) -> str:
        """Stable sender id this device uses when chatting as a viewer"""
        if not self._session_id:
            self._session_id = new_viewer_session_id()
            self.save()
        return self._session_id

    def identity(self, is_teacher: bool) -> str:
        return TEACHER_ID if is_teacher else self.viewer_session_id

    # ==================== CLASSES ====================

    def get_class(self, class_id: str) -> SchoolClass:
        for cls in self.classes:
            if cls.id == class_id:
                return cls
        raise NotFound("Class not found")

    def create_class(self, name: str) -> SchoolClass:
        if not name or not name.strip():
            raise ValidationError("Class name is required")
        new_class = SchoolClass(
            id=str(int(time.time() * 1000)),
            name=name.strip(),
            students=[Student(**s) for s in SAMPLE_STUDENTS],
            schema_version=SCHEMA_VERSION,
        )
        if any(c.id == new_class.id for c in self.classes):
            new_class.id = str(uuid.uuid4())
        self.classes.append(new_class)
        self.save()
        logger.info(f"Created class {new_class.id} '{new_class.name}'")
        return new_class

    def delete_class(self, class_id: str) -> None:
        """Local delete only; a published registry entry is left alone"""
        cls = self.get_class(class_id)
        self.classes = [c for c in self.classes if c.id != cls.id]
        self.save()

    def update_class(self, class_id: str, updater: Callable[[SchoolClass], object]):
        """Apply an in-place mutation to one class and persist it"""
        cls = self.get_class(class_id)
        result = updater(cls)
        self.save()
        return result

    # ==================== ROSTER ====================

    def add_student(self, class_id: str, name: str) -> Student:
        if not name or not name.strip():
            raise ValidationError("Student name is required")

        def _add(cls: SchoolClass) -> Student:
            student = Student(
                id=uuid.uuid4().hex,
                name=name.strip(),
                roll_no=str(len(cls.students) + 1).zfill(2),
            )
            cls.students.append(student)
            return student

        return self.update_class(class_id, _add)

    def delete_student(self, class_id: str, student_id: str) -> None:
        def _delete(cls: SchoolClass) -> None:
            if not any(s.id == student_id for s in cls.students):
                raise NotFound("Student not found")
            cls.students = [s for s in cls.students if s.id != student_id]
            for month_attendance in cls.attendance.values():
                month_attendance.pop(student_id, None)

        self.update_class(class_id, _delete)

    # ==================== ATTENDANCE ====================

    def mark_attendance(self, class_id: str, month: str, student_id: str, day: int, year: Optional[int] = None):
        return self.update_class(
            class_id,
            lambda cls: attendance_service.advance(cls, month, student_id, day, year=year),
        )

    def toggle_holiday(self, class_id: str, month: str, day: int, year: Optional[int] = None) -> bool:
        return self.update_class(
            class_id,
            lambda cls: attendance_service.toggle_holiday(cls, month, day, year=year),
        )

    def set_share_code(self, class_id: str, code: str) -> None:
        def _set(cls: SchoolClass) -> None:
            cls.share_code = code

        self.update_class(class_id, _set)

    # ==================== SAVED CODES ====================

    def remember_code(self, code: str, name: str) -> None:
        code = code.strip().upper()
        if any(c.code == code for c in self.saved_codes):
            return
        self.saved_codes.append(SavedCode(code=code, name=name))
        self.save()

    def forget_code(self, code: str) -> None:
        code = code.strip().upper()
        self.saved_codes = [c for c in self.saved_codes if c.code != code]
        self.save()

    # ==================== IMPORT / EXPORT ====================

    def export_class(self, class_id: str) -> dict:
        return self.get_class(class_id).to_wire()

    def import_class(self, data) -> SchoolClass:
        """
        Import a class from an exported snapshot.

        The snapshot is validated as a whole; on any error nothing is stored.
        Share code and chat state are not carried over and attendance of
        students missing from the roster is dropped. An id that collides with
        an existing class is replaced.
        """
        if not isinstance(data, dict):
            raise ImportValidationError("Import must be a JSON object")
        try:
            imported = SchoolClass.model_validate(data)
        except SchemaValidationError as e:
            raise ImportValidationError(f"Invalid class data: {e.error_count()} errors")

        # Entries of students no longer on the roster are unreachable; drop them
        roster = {s.id for s in imported.students}
        for month, month_attendance in list(imported.attendance.items()):
            orphans = [sid for sid in month_attendance if sid not in roster]
            for student_id in orphans:
                del month_attendance[student_id]
            if not orphans:
                continue
            logger.info(f"Dropped {month} attendance of unknown students {', '.join(orphans)} on import")
            if not month_attendance:
                del imported.attendance[month]

        imported.share_code = None
        imported.messages = []
        imported.is_chat_locked = False
        imported.schema_version = SCHEMA_VERSION
        if any(c.id == imported.id for c in self.classes):
            old_id = imported.id
            imported.id = str(uuid.uuid4())
            logger.info(f"Imported class id {old_id} already exists, assigned {imported.id}")

        self.classes.append(imported)
        self.save()
        return imported
