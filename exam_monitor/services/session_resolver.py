"""
Session Resolver - which exam is relevant to a supervisor right now

Read-only and lock-free: clients poll it every few seconds.

1. An active exam the supervisor is assigned to wins (earliest actual start).
2. Otherwise the supervisor's scheduled exams on today's civil date in the
   reference timezone are scanned in start-time order and the first whose
   start instant lies within +/- the window of `now` is returned.
"""
import logging
from datetime import datetime
from typing import Optional
from flask import current_app
from exam_monitor.models.exam import Exam, ExamMember
from exam_monitor.utils.time_utils import civil_date, local_instant, get_zone, utcnow, within_window

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "Asia/Jerusalem"
DEFAULT_WINDOW_MINUTES = 30


class SessionResolver:
    """
    Usage:
        exam = get_session_resolver().resolve_for_supervisor(supervisor_id)
    """

    def resolve_for_supervisor(
        self,
        supervisor_id: str,
        now: Optional[datetime] = None,
        tz: Optional[str] = None,
        window_minutes: Optional[int] = None,
    ) -> Optional[Exam]:
        """
        Args:
            supervisor_id: user id of the polling supervisor
            now: aware instant, or naive UTC; defaults to the current time
            tz: reference timezone name; defaults to EXAM_TIMEZONE
            window_minutes: half-width of the start window; defaults to EXAM_WINDOW_MINUTES
        """
        if not supervisor_id:
            return None

        config = current_app.config
        zone = get_zone(tz or config.get("EXAM_TIMEZONE", DEFAULT_TIMEZONE))
        if window_minutes is None:
            window_minutes = config.get("EXAM_WINDOW_MINUTES", DEFAULT_WINDOW_MINUTES)
        if now is None:
            now = utcnow()

        supervised = Exam.query.join(ExamMember).filter(
            ExamMember.user_id == supervisor_id,
            ExamMember.role == "supervisor",
        )

        active = (
            supervised.filter(Exam.status == "active")
            .order_by(Exam.actual_start_time.asc(), Exam.id.asc())
            .first()
        )
        if active:
            return active

        today = civil_date(now, zone)
        candidates = (
            supervised.filter(Exam.status == "scheduled", Exam.date == today)
            .order_by(Exam.start_time.asc(), Exam.id.asc())
            .all()
        )

        for exam in candidates:
            if exam.start_time is None:
                continue
            if within_window(local_instant(exam.date, exam.start_time, zone), now, window_minutes):
                return exam

        logger.debug(f"[Resolver] No exam for supervisor {supervisor_id} on {today}")
        return None


_resolver: Optional[SessionResolver] = None


def get_session_resolver() -> SessionResolver:
    global _resolver
    if _resolver is None:
        _resolver = SessionResolver()
    return _resolver
