"""
Main registrar service module.

This module provides the enrollment service used by the CLI and the REST API.
It resolves the caller's identity, reads the student's schedule from the
store, runs the admission rules and commits the outcome.
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from . import config
from .data.converter import DataConverter
from .data.loader import (
    COURSES_FILE, ENROLLMENTS_FILE, OFFERINGS_FILE, SEMESTERS_FILE, RegistrarDataLoader,
)
from .data.store import EnrollmentStore, InMemoryStore
from .exceptions import (
    DuplicateEnrollmentError, MalformedInputError, NotFoundError, PermissionDeniedError,
    SeatUnavailableError,
)
from .models.entities import (
    CourseOffering, Enrollment, EnrollmentRecord, RequestContext, Role, StudentSchedule,
)
from .rules import catalog
from .rules.admission import AdmissionDecision, AdmissionEvaluator, Candidate, RejectReason
from .rules.sections import next_section_label

logger = logging.getLogger(__name__)


@dataclass
class EnrollmentResult:
    """Decision for an enrollment request plus the rows it created."""
    decision: AdmissionDecision
    enrollments: List[Enrollment] = field(default_factory=list)

    @property
    def admitted(self) -> bool:
        return self.decision.admitted

    def to_dict(self) -> Dict[str, Any]:
        result = self.decision.to_dict()
        result['enrollment_ids'] = [e.id for e in self.enrollments]
        return result


@dataclass
class WithdrawalResult:
    """Outcome of a withdrawal request."""
    withdrawn: bool
    reason: Optional[RejectReason] = None
    detail: str = ""
    enrollments: List[Enrollment] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'withdrawn': self.withdrawn,
            'reason': self.reason.value if self.reason else None,
            'detail': self.detail,
            'enrollment_ids': [e.id for e in self.enrollments],
        }


class EnrollmentService:
    """
    Registrar service.

    This class is responsible for:
    - Serving the schedule catalog and creating offerings
    - Admitting students to offerings and withdrawing them
    - Recording grades and producing student reports
    """

    def __init__(self, store: EnrollmentStore,
                 evaluator: Optional[AdmissionEvaluator] = None,
                 current_semester_id: Optional[int] = config.CURRENT_SEMESTER_ID):
        """
        Initialize the service.

        Args:
            store: Persistent store holding courses, offerings and enrollments
            evaluator: Admission rules; defaults to the configured credit cap and clash policy
            current_semester_id: Semester used when the request context does not name one
        """
        self.store = store
        self.evaluator = evaluator or AdmissionEvaluator()
        self.current_semester_id = current_semester_id
        self.converter = DataConverter()

    @classmethod
    def from_directory(cls, input_dir: str, debug_dir: Optional[str] = None, **kwargs) -> "EnrollmentService":
        """Build a service over an in-memory store loaded from CSV files."""
        logger.info(f"Loading registrar data from {input_dir}")
        data = RegistrarDataLoader(input_dir, debug_dir).load_all()

        converter = DataConverter()
        store = InMemoryStore(
            courses=converter.convert_courses(data['courses']).values(),
            offerings=converter.convert_offerings(data['offerings']).values(),
            enrollments=converter.convert_enrollments(data['enrollments']).values(),
            semesters=converter.convert_semesters(data['semesters']).values(),
        )
        return cls(store, **kwargs)

    @classmethod
    def from_database(cls, database_url: str, **kwargs) -> "EnrollmentService":
        """Build a service over a SQLAlchemy database."""
        from .data.sql_store import SqlStore

        return cls(SqlStore(database_url), **kwargs)

    def save(self, output_dir: str) -> Dict[str, str]:
        """
        Write the store's contents back to CSV files.

        Returns:
            Dictionary of output file paths
        """
        output = Path(output_dir)
        output.mkdir(parents=True, exist_ok=True)
        logger.info(f"Saving registrar data to {output}")

        output_files = {
            'courses': str(output / COURSES_FILE),
            'offerings': str(output / OFFERINGS_FILE),
            'enrollments': str(output / ENROLLMENTS_FILE),
            'semesters': str(output / SEMESTERS_FILE),
        }

        self.converter.convert_to_courses_df(self.store.list_courses()).to_csv(output_files['courses'], index=False)
        self.converter.convert_to_offerings_df(self.store.list_offerings()).to_csv(output_files['offerings'], index=False)
        self.converter.convert_to_enrollments_df(self.store.list_enrollments()).to_csv(output_files['enrollments'], index=False)
        self.converter.convert_to_semesters_df(self.store.list_semesters()).to_csv(output_files['semesters'], index=False)

        return output_files

    # -- context -------------------------------------------------------------

    def semester_for(self, ctx: RequestContext) -> Optional[int]:
        return ctx.semester_id if ctx.semester_id is not None else self.current_semester_id

    def _resolve_student(self, ctx: RequestContext, student_id: Optional[str],
                         allow_faculty: bool = False) -> str:
        """Student the request acts on; students may only act on themselves."""
        if student_id is None or student_id == ctx.user_id:
            if ctx.role != Role.STUDENT and student_id is None:
                raise MalformedInputError("A student ID is required for this request")
            return ctx.user_id

        if ctx.role == Role.STAFF or (allow_faculty and ctx.role == Role.FACULTY):
            return student_id

        raise PermissionDeniedError(f"User {ctx.user_id} may not act for student {student_id}")

    @staticmethod
    def _require_staff(ctx: RequestContext) -> None:
        if not ctx.is_staff:
            raise PermissionDeniedError(f"User {ctx.user_id} is not staff")

    # -- catalog -------------------------------------------------------------

    def catalog(self, class_type: str = "Class", credits: Optional[float] = None) -> Dict[str, List[str]]:
        """Choices offered to staff when defining an offering."""
        try:
            time_slots = catalog.time_slots_for(class_type, credits)
        except ValueError as e:
            raise MalformedInputError(str(e)) from e

        return {
            'time_slots': time_slots,
            'rooms': catalog.room_numbers(),
            'day_slots': catalog.day_slot_options(),
        }

    def candidate(self, offering_id: str) -> Candidate:
        """Offering with its course; raises NotFoundError for either."""
        offering = self.store.get_offering(offering_id)
        if offering is None:
            raise NotFoundError(f"Offering {offering_id} not found")
        course = self.store.get_course(offering.course_id)
        if course is None:
            raise NotFoundError(f"Course {offering.course_id} of offering {offering_id} not found")
        return Candidate(offering, course)

    def available_offerings(self, ctx: RequestContext, search: Optional[str] = None,
                            student_id: Optional[str] = None) -> List[Candidate]:
        """
        Offerings of the semester a student can still pick, sorted by course code.

        Offerings the student already holds are left out. ``search`` matches
        course code or name, case-insensitively.
        """
        semester_id = self.semester_for(ctx)
        held = set()
        if ctx.role == Role.STUDENT or student_id is not None:
            student = self._resolve_student(ctx, student_id, allow_faculty=True)
            held = {r.offering.id for r in self.store.student_enrollments(student)}

        courses = self.store.course_map()
        needle = search.strip().lower() if search else ""
        candidates = []

        for offering in self.store.list_offerings(semester_id):
            course = courses.get(offering.course_id)
            if course is None or offering.id in held:
                continue
            if needle and needle not in course.code.lower() and needle not in course.name.lower():
                continue
            candidates.append(Candidate(offering, course))

        return sorted(candidates, key=lambda c: (c.course.code, c.offering.section))

    def create_offering(self, ctx: RequestContext, course_id: str, day_slot: str, time_slot: str,
                        room: str, instructor_id: Optional[str] = None,
                        capacity: int = config.DEFAULT_SEATS, class_type: str = "Class",
                        semester_id: Optional[int] = None) -> CourseOffering:
        """
        Create an offering from catalog choices, allocating the next free section letter.

        Raises:
            PermissionDeniedError: If the caller is not staff
            NotFoundError: If the course does not exist
            MalformedInputError: If a slot, room or capacity is not valid
        """
        self._require_staff(ctx)

        course = self.store.get_course(course_id)
        if course is None:
            raise NotFoundError(f"Course {course_id} not found")

        choices = self.catalog(class_type, course.credits)
        if day_slot not in choices['day_slots']:
            raise MalformedInputError(f"Day slot {day_slot!r} is not one of {choices['day_slots']}")
        if time_slot not in choices['time_slots']:
            raise MalformedInputError(f"Time slot {time_slot!r} is not available for a {class_type}")
        if room not in choices['rooms']:
            raise MalformedInputError(f"Room {room!r} does not exist")
        if capacity < 1:
            raise MalformedInputError(f"Capacity must be at least 1, got {capacity}")

        existing = [o.section for o in self.store.list_offerings() if o.course_id == course_id]
        offering = CourseOffering(
            id="",
            course_id=course_id,
            section=next_section_label(course.code, existing),
            day_slot=day_slot,
            time_slot=time_slot,
            room=room,
            capacity=capacity,
            instructor_id=instructor_id,
            class_type=class_type,
            semester_id=semester_id if semester_id is not None else self.semester_for(ctx),
        )

        created = self.store.add_offering(offering)
        logger.info(f"Created offering {created.id} ({created.section}) for course {course.code}")
        return created

    # -- enrollment ----------------------------------------------------------

    def schedule_for(self, student_id: str, semester_id: Optional[int] = None) -> StudentSchedule:
        """A student's enrollments in one semester (all enrollments when semester is None)."""
        records = [
            r for r in self.store.student_enrollments(student_id)
            if semester_id is None or r.offering.semester_id == semester_id
        ]
        return StudentSchedule(student_id, records)

    def _paired_lab(self, candidate: Candidate, schedule: StudentSchedule) -> Optional[Candidate]:
        """
        Lab offering that goes with a lecture: a course named "<lecture name> ... Lab"
        with an offering in the same section letter and semester.
        """
        if candidate.course.is_lab:
            return None

        base_name = candidate.course.name.lower()
        lab_courses = {
            c.id: c for c in self.store.list_courses()
            if c.id != candidate.course.id and c.is_lab
            and c.name.lower().startswith(base_name) and c.name.lower().endswith("lab")
        }
        if not lab_courses or any(schedule.holds_course(course_id) for course_id in lab_courses):
            return None

        matches = sorted(
            (o for o in self.store.list_offerings(candidate.offering.semester_id)
             if o.course_id in lab_courses and o.section_letter == candidate.offering.section_letter),
            key=lambda o: o.id
        )
        if not matches:
            return None
        return Candidate(matches[0], lab_courses[matches[0].course_id])

    def evaluate(self, ctx: RequestContext, offering_id: str,
                 student_id: Optional[str] = None) -> AdmissionDecision:
        """Run the admission rules without committing anything."""
        student = self._resolve_student(ctx, student_id)
        candidate = self.candidate(offering_id)
        schedule = self.schedule_for(student, candidate.offering.semester_id)
        return self.evaluator.evaluate(candidate, schedule, self._paired_lab(candidate, schedule))

    def enroll(self, ctx: RequestContext, offering_id: str,
               student_id: Optional[str] = None) -> EnrollmentResult:
        """
        Admit a student to an offering (and its paired lab, if any).

        The seat check is repeated atomically by the store: a request that
        passes the rules but loses the last seat to a concurrent request is
        rejected with NO_SEATS_AVAILABLE.
        """
        student = self._resolve_student(ctx, student_id)
        candidate = self.candidate(offering_id)
        schedule = self.schedule_for(student, candidate.offering.semester_id)
        companion = self._paired_lab(candidate, schedule)

        decision = self.evaluator.evaluate(candidate, schedule, companion)
        if not decision.admitted:
            logger.info(f"Student {student} rejected from offering {offering_id}: {decision.reason.value}")
            return EnrollmentResult(decision)

        try:
            enrollments = self.store.commit_admission(student, decision.offering_ids)
        except SeatUnavailableError as e:
            which = "the corresponding lab section" if companion and e.offering_id == companion.offering.id \
                else candidate.offering.section
            logger.info(f"Student {student} lost the last seat in offering {e.offering_id}")
            return EnrollmentResult(AdmissionDecision.reject(
                RejectReason.NO_SEATS_AVAILABLE, f"No seats available in {which}."))
        except DuplicateEnrollmentError:
            return EnrollmentResult(AdmissionDecision.reject(
                RejectReason.ALREADY_ENROLLED, f"Already enrolled in {candidate.label}."))

        detail = f"Successfully enrolled in {candidate.course.name}"
        if companion:
            detail += f" and {companion.course.name}"
        decision.detail = detail + "."
        return EnrollmentResult(decision, enrollments)

    def _paired_lab_enrollment(self, record: EnrollmentRecord,
                               records: List[EnrollmentRecord]) -> Optional[EnrollmentRecord]:
        if record.course.is_lab:
            return None
        base_name = record.course.name.lower()
        for other in records:
            name = other.course.name.lower()
            if (other.course.is_lab and name.startswith(base_name) and name.endswith("lab")
                    and other.offering.section_letter == record.offering.section_letter
                    and other.offering.semester_id == record.offering.semester_id):
                return other
        return None

    def withdraw(self, ctx: RequestContext, enrollment_id: str) -> WithdrawalResult:
        """
        Withdraw an enrollment (and the paired lab enrollment, if any).

        Withdrawing an enrollment that no longer exists changes nothing and
        is reported as NOT_ENROLLED.
        """
        enrollment = self.store.get_enrollment(enrollment_id)
        if enrollment is None:
            return WithdrawalResult(False, RejectReason.NOT_ENROLLED,
                                    f"Enrollment {enrollment_id} not found or already withdrawn.")

        if enrollment.student_id != ctx.user_id:
            self._require_staff(ctx)

        records = self.store.student_enrollments(enrollment.student_id)
        record = next((r for r in records if r.enrollment.id == enrollment_id), None)
        enrollment_ids = [enrollment_id]
        if record is not None:
            lab = self._paired_lab_enrollment(record, records)
            if lab is not None:
                enrollment_ids.append(lab.enrollment.id)

        removed = self.store.commit_withdrawal(enrollment_ids)
        if enrollment_id not in {e.id for e in removed}:
            return WithdrawalResult(False, RejectReason.NOT_ENROLLED,
                                    f"Enrollment {enrollment_id} not found or already withdrawn.")

        detail = "Course and corresponding lab dropped." if len(removed) > 1 else "Course dropped."
        return WithdrawalResult(True, detail=detail, enrollments=removed)

    def record_grade(self, ctx: RequestContext, enrollment_id: str, grade: Optional[float]) -> Enrollment:
        """
        Set an enrollment's grade point.

        Only staff or the offering's instructor may grade.
        """
        if grade is not None and not config.MIN_GRADE_POINT <= grade <= config.MAX_GRADE_POINT:
            raise MalformedInputError(
                f"Grade must be between {config.MIN_GRADE_POINT} and {config.MAX_GRADE_POINT}, got {grade}"
            )

        enrollment = self.store.get_enrollment(enrollment_id)
        if enrollment is None:
            raise NotFoundError(f"Enrollment {enrollment_id} not found")

        if not ctx.is_staff:
            offering = self.store.get_offering(enrollment.offering_id)
            if ctx.role != Role.FACULTY or offering is None or offering.instructor_id != ctx.user_id:
                raise PermissionDeniedError(f"User {ctx.user_id} does not teach offering {enrollment.offering_id}")

        updated = self.store.set_grade(enrollment_id, grade)
        logger.info(f"Recorded grade {grade} for enrollment {enrollment_id}")
        return updated

    # -- reports -------------------------------------------------------------

    def student_schedule(self, ctx: RequestContext, student_id: Optional[str] = None) -> StudentSchedule:
        student = self._resolve_student(ctx, student_id, allow_faculty=True)
        return self.schedule_for(student, self.semester_for(ctx))

    def routine(self, ctx: RequestContext, student_id: Optional[str] = None) -> pd.DataFrame:
        """Weekly routine grid for the student's current semester."""
        return self.converter.convert_to_routine_df(self.student_schedule(ctx, student_id).records)

    def grade_report(self, ctx: RequestContext, student_id: Optional[str] = None) -> Dict[str, Any]:
        """Grade report over past semesters (the current semester is excluded)."""
        student = self._resolve_student(ctx, student_id, allow_faculty=True)
        names = {s.id: s.name for s in self.store.list_semesters()}
        report = self.converter.generate_grade_report(
            self.store.student_enrollments(student), self.semester_for(ctx), names
        )
        report['student_id'] = student
        return report

    def seat_report(self, ctx: RequestContext) -> pd.DataFrame:
        self._require_staff(ctx)
        return self.converter.generate_seat_report(
            self.store.list_offerings(self.semester_for(ctx)), self.store.course_map()
        )


def create_service(input_dir: Optional[str] = None, **kwargs) -> EnrollmentService:
    """Service over the configured database, or over CSV files when no database is set."""
    if config.DATABASE_URL and input_dir is None:
        return EnrollmentService.from_database(config.DATABASE_URL, **kwargs)
    return EnrollmentService.from_directory(str(input_dir or config.DATA_DIR), **kwargs)
