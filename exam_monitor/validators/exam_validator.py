"""
Exam Validator - request payload validation for the exam catalog

Validates:
- Required course fields (name, integer course code)
- Required schedule: date, wall-clock start/end (end after start), location
- Staff/student identifier lists
- Exam rules and checklist items
"""
import logging
from dataclasses import dataclass, field
from datetime import date, time
from typing import Any, Dict, List, Optional
from exam_monitor.errors import ValidationError
from exam_monitor.utils.time_utils import parse_date, parse_time, minutes_between

logger = logging.getLogger(__name__)


# ============================================================================
# Configuration
# ============================================================================

RULE_ICONS = {"calculator", "book", "phone", "headphones"}

SCHEDULE_FIELDS = (
    ("date", "date", parse_date, "YYYY-MM-DD"),
    ("startTime", "start_time", parse_time, "HH:MM"),
    ("endTime", "end_time", parse_time, "HH:MM"),
)

ROSTER_FIELDS = {
    "lecturer": "lecturerIds",
    "supervisor": "supervisorIds",
    "student": "studentIds",
}


# ============================================================================
# Exam Descriptor
# ============================================================================

@dataclass
class ExamDescriptor:
    """Validated exam fields. Unset attributes were absent from the payload."""
    provided: set = field(default_factory=set)
    course_name: Optional[str] = None
    course_code: Optional[int] = None
    date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    location: Optional[str] = None
    rules: List[Dict[str, Any]] = field(default_factory=list)
    checklist: List[Dict[str, Any]] = field(default_factory=list)
    roster: Dict[str, List[str]] = field(default_factory=dict)  # role -> ID numbers

    def has(self, name: str) -> bool:
        return name in self.provided


class ExamValidator:
    """
    Turns a camelCase exam payload into an ExamDescriptor.

    Usage:
        descriptor = ExamValidator().validate(request.get_json(), partial=False)
    """

    def validate(self, data: Optional[Dict[str, Any]], partial: bool = False) -> ExamDescriptor:
        """
        Validate an exam payload.

        Args:
            data: request body
            partial: True for updates, where absent fields keep their value

        Raises:
            ValidationError: on the first invalid field
        """
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")

        desc = ExamDescriptor()

        if "courseName" in data or not partial:
            desc.course_name = self.validate_course_name(data.get("courseName"))
            desc.provided.add("course_name")

        if "courseCode" in data or not partial:
            desc.course_code = self.validate_course_code(data.get("courseCode"))
            desc.provided.add("course_code")

        for key, attr, parser, fmt in SCHEDULE_FIELDS:
            if key in data or not partial:
                setattr(desc, attr, self._required(data.get(key), parser, key, fmt))
                desc.provided.add(attr)

        if "location" in data or not partial:
            desc.location = self.validate_location(data.get("location"))
            desc.provided.add("location")

        if "rules" in data:
            desc.rules = self.validate_rules(data["rules"])
            desc.provided.add("rules")

        if "checklist" in data:
            desc.checklist = self.validate_checklist(data["checklist"])
            desc.provided.add("checklist")

        for role, key in ROSTER_FIELDS.items():
            if key in data:
                desc.roster[role] = self.validate_id_list(data[key], key)

        return desc

    # =========================================================================
    # Field validators
    # =========================================================================

    def validate_course_name(self, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValidationError("Missing required field: courseName")
        return value.strip()

    def validate_course_code(self, value: Any) -> int:
        if value is None or value == "":
            raise ValidationError("Missing required field: courseCode")
        if isinstance(value, bool):
            raise ValidationError("courseCode must be an integer")
        if isinstance(value, int):
            return value
        if isinstance(value, str) and value.strip().lstrip("-").isdigit():
            return int(value.strip())
        raise ValidationError("courseCode must be an integer")

    def validate_location(self, value: Any) -> str:
        """Trimmed, inner whitespace collapsed; case is kept for display"""
        if value is not None and not isinstance(value, str):
            raise ValidationError("location must be a string")
        location = " ".join((value or "").split())
        if not location:
            raise ValidationError("Missing required field: location")
        return location

    def validate_time_range(self, start: Optional[time], end: Optional[time]) -> Optional[int]:
        """Duration in minutes when both ends are known"""
        if start is None or end is None:
            return None
        duration = minutes_between(start, end)
        if duration <= 0:
            raise ValidationError("endTime must be after startTime")
        return duration

    def validate_rules(self, rules: Any) -> List[Dict[str, Any]]:
        if rules is None:
            return []
        if not isinstance(rules, list):
            raise ValidationError("rules must be a list")
        cleaned = []
        for rule in rules:
            if not isinstance(rule, dict) or not rule.get("id") or not rule.get("label"):
                raise ValidationError("Each rule needs an id and a label")
            if rule.get("icon") not in RULE_ICONS:
                raise ValidationError(f"Invalid rule icon: {rule.get('icon')}")
            cleaned.append({
                "id": str(rule["id"]),
                "label": str(rule["label"]),
                "icon": rule["icon"],
                "allowed": bool(rule.get("allowed", False)),
            })
        return cleaned

    def validate_checklist(self, items: Any) -> List[Dict[str, Any]]:
        if items is None:
            return []
        if not isinstance(items, list):
            raise ValidationError("checklist must be a list")
        cleaned = []
        for item in items:
            if not isinstance(item, dict) or not item.get("id") or not item.get("description"):
                raise ValidationError("Each checklist item needs an id and a description")
            cleaned.append({
                "id": str(item["id"]),
                "description": str(item["description"]),
                "isDone": bool(item.get("isDone", False)),
            })
        return cleaned

    def validate_id_list(self, value: Any, key: str) -> List[str]:
        if value is None:
            return []
        if not isinstance(value, list):
            raise ValidationError(f"{key} must be a list")
        ids = []
        for item in value:
            if isinstance(item, bool) or not isinstance(item, (str, int)) or not str(item).strip():
                raise ValidationError(f"{key} contains an invalid identifier")
            ids.append(str(item).strip())
        return ids

    def _required(self, value, parser, name, fmt):
        if value in (None, ""):
            raise ValidationError(f"Missing required field: {name}")
        try:
            return parser(value)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid {name} format. Use {fmt}")


def parse_positive_minutes(value: Any, name: str = "minutesToAdd") -> int:
    """Positive whole number of minutes"""
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a positive integer")
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{name} must be a positive integer")
    return value


_validator: Optional[ExamValidator] = None


def get_exam_validator() -> ExamValidator:
    global _validator
    if _validator is None:
        _validator = ExamValidator()
    return _validator
