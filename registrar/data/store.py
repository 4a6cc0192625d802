"""
Persistent store interface and the in-memory implementation.

Stores own the two write paths that touch an offering's filled count:
admission (insert enrollments, take seats) and withdrawal (delete
enrollments, give seats back). Each is applied as one atomic unit so that
an offering's filled count always equals the number of its enrollments.
"""
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from ..exceptions import DuplicateEnrollmentError, MalformedInputError, NotFoundError, SeatUnavailableError
from ..models.entities import Course, CourseOffering, Enrollment, EnrollmentRecord, Semester

logger = logging.getLogger(__name__)


def new_id() -> str:
    return str(uuid.uuid4())


class EnrollmentStore(ABC):
    """Operations the registrar needs from a persistent store."""

    @abstractmethod
    def list_courses(self) -> List[Course]:
        ...

    @abstractmethod
    def get_course(self, course_id: str) -> Optional[Course]:
        ...

    @abstractmethod
    def add_course(self, course: Course) -> Course:
        ...

    @abstractmethod
    def list_semesters(self) -> List[Semester]:
        ...

    @abstractmethod
    def add_semester(self, semester: Semester) -> Semester:
        ...

    @abstractmethod
    def list_offerings(self, semester_id: Optional[int] = None) -> List[CourseOffering]:
        """All offerings, optionally restricted to one semester."""

    @abstractmethod
    def get_offering(self, offering_id: str) -> Optional[CourseOffering]:
        ...

    @abstractmethod
    def add_offering(self, offering: CourseOffering) -> CourseOffering:
        """
        Store a new offering with no seats taken; an empty id is generated.

        Raises:
            NotFoundError: If the course does not exist
            MalformedInputError: If an offering with the same id already exists
        """

    @abstractmethod
    def list_enrollments(self) -> List[Enrollment]:
        ...

    @abstractmethod
    def get_enrollment(self, enrollment_id: str) -> Optional[Enrollment]:
        ...

    @abstractmethod
    def student_enrollments(self, student_id: str) -> List[EnrollmentRecord]:
        """A student's enrollments joined to their offerings and courses."""

    @abstractmethod
    def commit_admission(self, student_id: str, offering_ids: List[str],
                         grade: Optional[float] = 0.0) -> List[Enrollment]:
        """
        Take one seat in every offering and insert the matching enrollments.

        Either every seat is taken and every enrollment inserted, or nothing
        changes.

        Raises:
            SeatUnavailableError: If any offering is already full
            DuplicateEnrollmentError: If the student already holds a section of the same
                course in the same semester
            NotFoundError: If an offering does not exist
        """

    @abstractmethod
    def commit_withdrawal(self, enrollment_ids: List[str]) -> List[Enrollment]:
        """
        Delete the enrollments and give their seats back (never below zero).

        Enrollments that no longer exist are skipped. Returns the removed rows.
        """

    @abstractmethod
    def set_grade(self, enrollment_id: str, grade: Optional[float]) -> Enrollment:
        ...

    def course_map(self) -> Dict[str, Course]:
        return {course.id: course for course in self.list_courses()}


class InMemoryStore(EnrollmentStore):
    """
    Dictionary-backed store guarded by a single lock.

    Holding the lock across the seat check and the increment makes the
    conditional update atomic for every thread sharing the store. Reads
    return copies so callers never mutate stored rows.
    """

    def __init__(self,
                 courses: Iterable[Course] = (),
                 offerings: Iterable[CourseOffering] = (),
                 enrollments: Iterable[Enrollment] = (),
                 semesters: Iterable[Semester] = ()):
        self._lock = threading.RLock()
        self._courses: Dict[str, Course] = {c.id: replace(c) for c in courses}
        self._offerings: Dict[str, CourseOffering] = {o.id: replace(o) for o in offerings}
        self._enrollments: Dict[str, Enrollment] = {e.id: replace(e) for e in enrollments}
        self._semesters: Dict[int, Semester] = {s.id: replace(s) for s in semesters}

        logger.info(f"In-memory store initialised with {len(self._courses)} courses, "
                    f"{len(self._offerings)} offerings, {len(self._enrollments)} enrollments")

    # -- catalog -------------------------------------------------------------

    def list_courses(self) -> List[Course]:
        with self._lock:
            return [replace(c) for c in self._courses.values()]

    def get_course(self, course_id: str) -> Optional[Course]:
        with self._lock:
            course = self._courses.get(course_id)
            return replace(course) if course else None

    def add_course(self, course: Course) -> Course:
        with self._lock:
            self._courses[course.id] = replace(course)
            return replace(course)

    def list_semesters(self) -> List[Semester]:
        with self._lock:
            return sorted((replace(s) for s in self._semesters.values()), key=lambda s: s.id)

    def add_semester(self, semester: Semester) -> Semester:
        with self._lock:
            self._semesters[semester.id] = replace(semester)
            return replace(semester)

    def list_offerings(self, semester_id: Optional[int] = None) -> List[CourseOffering]:
        with self._lock:
            return [replace(o) for o in self._offerings.values()
                    if semester_id is None or o.semester_id == semester_id]

    def get_offering(self, offering_id: str) -> Optional[CourseOffering]:
        with self._lock:
            offering = self._offerings.get(offering_id)
            return replace(offering) if offering else None

    def add_offering(self, offering: CourseOffering) -> CourseOffering:
        with self._lock:
            if offering.course_id not in self._courses:
                raise NotFoundError(f"Course {offering.course_id} not found")
            if offering.id in self._offerings:
                raise MalformedInputError(f"Offering {offering.id} already exists")
            stored = replace(offering, id=offering.id or new_id(), filled=0)
            self._offerings[stored.id] = stored
            return replace(stored)

    # -- enrollments ---------------------------------------------------------

    def list_enrollments(self) -> List[Enrollment]:
        with self._lock:
            return [replace(e) for e in self._enrollments.values()]

    def get_enrollment(self, enrollment_id: str) -> Optional[Enrollment]:
        with self._lock:
            enrollment = self._enrollments.get(enrollment_id)
            return replace(enrollment) if enrollment else None

    def student_enrollments(self, student_id: str) -> List[EnrollmentRecord]:
        with self._lock:
            records = []
            for enrollment in self._enrollments.values():
                if enrollment.student_id != student_id:
                    continue
                offering = self._offerings.get(enrollment.offering_id)
                course = self._courses.get(offering.course_id) if offering else None
                if offering is None or course is None:
                    logger.warning(f"Enrollment {enrollment.id} references a missing offering or course")
                    continue
                records.append(EnrollmentRecord(replace(enrollment), replace(offering), replace(course)))
            return records

    def commit_admission(self, student_id: str, offering_ids: List[str],
                         grade: Optional[float] = 0.0) -> List[Enrollment]:
        with self._lock:
            # one section of a course per student and semester
            held = set()
            for enrollment in self._enrollments.values():
                offering = self._offerings.get(enrollment.offering_id)
                if enrollment.student_id == student_id and offering is not None:
                    held.add((offering.course_id, offering.semester_id))

            # validate everything before the first write
            for offering_id in offering_ids:
                offering = self._offerings.get(offering_id)
                if offering is None:
                    raise NotFoundError(f"Offering {offering_id} not found")
                if (offering.course_id, offering.semester_id) in held:
                    raise DuplicateEnrollmentError(student_id, offering_id)
                if offering.filled >= offering.capacity:
                    raise SeatUnavailableError(offering_id)
                held.add((offering.course_id, offering.semester_id))

            created = []
            for offering_id in offering_ids:
                self._offerings[offering_id].filled += 1
                enrollment = Enrollment(id=new_id(), student_id=student_id,
                                        offering_id=offering_id, grade=grade)
                self._enrollments[enrollment.id] = enrollment
                created.append(replace(enrollment))

            logger.info(f"Admitted student {student_id} to offerings {offering_ids}")
            return created

    def commit_withdrawal(self, enrollment_ids: List[str]) -> List[Enrollment]:
        with self._lock:
            removed = []
            for enrollment_id in enrollment_ids:
                enrollment = self._enrollments.pop(enrollment_id, None)
                if enrollment is None:
                    continue
                offering = self._offerings.get(enrollment.offering_id)
                if offering is not None:
                    offering.filled = max(0, offering.filled - 1)
                removed.append(enrollment)

            if removed:
                logger.info(f"Withdrew enrollments {[e.id for e in removed]}")
            return removed

    def set_grade(self, enrollment_id: str, grade: Optional[float]) -> Enrollment:
        with self._lock:
            enrollment = self._enrollments.get(enrollment_id)
            if enrollment is None:
                raise NotFoundError(f"Enrollment {enrollment_id} not found")
            enrollment.grade = grade
            return replace(enrollment)
