"""
Enrollment admission rules.

The evaluator decides whether a student may take a seat in an offering.
Checks run in a fixed order and the first failing check decides the
rejection reason, so callers always surface exactly one message:

1. the student already holds a section of the same course
2. the credit cap would be exceeded
3. the offering clashes with the student's timetable
4. the offering has no seats left

Rejections are returned as AdmissionDecision values, never raised.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .. import config
from ..exceptions import MalformedInputError
from ..models.entities import Course, CourseOffering, EnrollmentRecord, StudentSchedule
from .timeslots import days_for_slot, parse_time_slot

logger = logging.getLogger(__name__)


class RejectReason(str, Enum):
    """Business reasons an enrollment request can be turned down."""
    ALREADY_ENROLLED = "ALREADY_ENROLLED"
    CREDIT_LIMIT_EXCEEDED = "CREDIT_LIMIT_EXCEEDED"
    TIME_CLASH = "TIME_CLASH"
    NO_SEATS_AVAILABLE = "NO_SEATS_AVAILABLE"
    NOT_ENROLLED = "NOT_ENROLLED"


class ClashPolicy(str, Enum):
    """
    How two offerings are compared for a timetable clash.

    EXACT_MATCH: clash only when day slot and time slot strings are identical
    OVERLAP: clash when the offerings share a weekday and their times overlap
    """
    EXACT_MATCH = "exact"
    OVERLAP = "overlap"


@dataclass
class Candidate:
    """An offering together with its course, as requested by a student."""
    offering: CourseOffering
    course: Course

    @property
    def label(self) -> str:
        return f"{self.course.code} - {self.course.name}"


@dataclass
class AdmissionDecision:
    """Outcome of evaluating one enrollment request."""
    admitted: bool
    reason: Optional[RejectReason] = None
    detail: str = ""
    offering_ids: List[str] = field(default_factory=list)

    @classmethod
    def admit(cls, offering_ids: List[str], detail: str = "") -> "AdmissionDecision":
        return cls(admitted=True, detail=detail, offering_ids=list(offering_ids))

    @classmethod
    def reject(cls, reason: RejectReason, detail: str) -> "AdmissionDecision":
        return cls(admitted=False, reason=reason, detail=detail)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "admitted": self.admitted,
            "reason": self.reason.value if self.reason else None,
            "detail": self.detail,
            "offering_ids": self.offering_ids,
        }


def _credits(value: float) -> str:
    return f"{value:g}"


class AdmissionEvaluator:
    """
    Applies the admission rules to a candidate offering.

    The evaluator is stateless; the caller supplies the student's current
    schedule for the candidate's semester.
    """

    def __init__(self, max_credits: float = config.MAX_CREDITS,
                 clash_policy: Optional[ClashPolicy] = None):
        self.max_credits = max_credits
        self.clash_policy = ClashPolicy(clash_policy or config.CLASH_POLICY)

    def evaluate(self,
                 candidate: Candidate,
                 schedule: StudentSchedule,
                 companion: Optional[Candidate] = None,
                 current_credits: Optional[float] = None) -> AdmissionDecision:
        """
        Decide whether the student may be admitted.

        Args:
            candidate: Offering the student asked for
            schedule: Student's current enrollments for the semester
            companion: Lab offering that must be taken together with the candidate
            current_credits: Credit total to use instead of the schedule's own sum

        Returns:
            AdmissionDecision listing the offerings to commit on admission

        Raises:
            MalformedInputError: If the clash policy needs a time slot that cannot be parsed
        """
        current = schedule.total_credits if current_credits is None else current_credits

        if schedule.holds_course(candidate.course.id):
            return AdmissionDecision.reject(
                RejectReason.ALREADY_ENROLLED,
                f"Already enrolled in {candidate.label}."
            )

        requested = candidate.course.credits + (companion.course.credits if companion else 0)
        if current + requested > self.max_credits:
            lab_info = (f" and {_credits(companion.course.credits)} credits for the lab"
                        if companion else "")
            return AdmissionDecision.reject(
                RejectReason.CREDIT_LIMIT_EXCEEDED,
                f"Credit limit exceeded. You have {_credits(current)} credits. "
                f"This course is {_credits(candidate.course.credits)} credits{lab_info}, "
                f"totaling {_credits(requested)} credits. Maximum is {_credits(self.max_credits)}."
            )

        clash = self.find_clash(candidate.offering, schedule.records)
        if clash is not None:
            return AdmissionDecision.reject(
                RejectReason.TIME_CLASH,
                f"Time clash with {clash.course.code} - {clash.course.name}."
            )

        if companion is not None:
            clash = self.find_clash(companion.offering, schedule.records)
            if clash is not None:
                return AdmissionDecision.reject(
                    RejectReason.TIME_CLASH,
                    f"Time clash between the corresponding lab and {clash.course.code} - {clash.course.name}."
                )

        if candidate.offering.is_full:
            return AdmissionDecision.reject(
                RejectReason.NO_SEATS_AVAILABLE,
                f"No seats available in {candidate.offering.section}."
            )

        if companion is not None and companion.offering.is_full:
            return AdmissionDecision.reject(
                RejectReason.NO_SEATS_AVAILABLE,
                f"No seats available in the corresponding lab section {companion.offering.section}."
            )

        offering_ids = [candidate.offering.id]
        if companion is not None:
            offering_ids.append(companion.offering.id)

        logger.debug(f"Admission check passed for offerings {offering_ids} "
                     f"({_credits(current)} + {_credits(requested)} credits)")
        return AdmissionDecision.admit(offering_ids)

    def find_clash(self, offering: CourseOffering,
                   records: List[EnrollmentRecord]) -> Optional[EnrollmentRecord]:
        """Return the first enrolled record the offering clashes with, if any."""
        if not offering.is_scheduled:
            return None

        if self.clash_policy == ClashPolicy.EXACT_MATCH:
            for record in records:
                if (record.offering.day_slot == offering.day_slot
                        and record.offering.time_slot == offering.time_slot):
                    return record
            return None

        slot = parse_time_slot(offering.time_slot)
        if slot is None:
            raise MalformedInputError(
                f"Offering {offering.id} has an unreadable time slot: {offering.time_slot!r}"
            )
        days = set(days_for_slot(offering.day_slot))

        for record in records:
            other = record.offering
            if not other.is_scheduled:
                continue
            other_slot = parse_time_slot(other.time_slot)
            if other_slot is None:
                logger.warning(f"Skipping clash check against offering {other.id}: "
                               f"unreadable time slot {other.time_slot!r}")
                continue
            if days.intersection(days_for_slot(other.day_slot)) and slot.overlaps(other_slot):
                return record

        return None
