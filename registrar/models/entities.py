"""
Entity models for the enrollment registrar.
These classes represent the core domain objects read from and written to the store.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class Role(str, Enum):
    """Roles a caller can act under."""
    STUDENT = "student"
    FACULTY = "faculty"
    STAFF = "staff"


@dataclass(frozen=True)
class RequestContext:
    """Identity of the caller for a single request, resolved by the identity provider."""
    user_id: str
    role: Role = Role.STUDENT
    semester_id: Optional[int] = None

    @property
    def is_staff(self) -> bool:
        return self.role == Role.STAFF


@dataclass
class Semester:
    """Represents an academic term."""
    id: int
    name: str


@dataclass
class Course:
    """Represents a catalog course with its credit weight."""
    id: str
    code: str
    name: str
    credits: float = 3.0
    department: str = ""

    @property
    def is_lab(self) -> bool:
        """Lab courses are recognised by name, e.g. 'Physics I Lab'."""
        return "lab" in self.name.lower()


@dataclass
class CourseOffering:
    """Represents a scheduled section of a course."""
    id: str
    course_id: str
    section: str
    day_slot: Optional[str] = None
    time_slot: Optional[str] = None
    room: Optional[str] = None
    capacity: int = 30
    filled: int = 0
    instructor_id: Optional[str] = None
    class_type: str = "Class"
    semester_id: Optional[int] = None

    def __post_init__(self):
        if self.capacity < 1:
            raise ValueError(f"Offering {self.id} capacity must be at least 1, got {self.capacity}")
        if not 0 <= self.filled <= self.capacity:
            raise ValueError(
                f"Offering {self.id} filled count {self.filled} outside 0..{self.capacity}"
            )

    @property
    def seats_left(self) -> int:
        return self.capacity - self.filled

    @property
    def is_full(self) -> bool:
        """Check if the offering is at full capacity."""
        return self.filled >= self.capacity

    @property
    def is_scheduled(self) -> bool:
        """Check if the offering has both a day slot and a time slot."""
        return bool(self.day_slot) and bool(self.time_slot)

    @property
    def section_letter(self) -> str:
        """Trailing letter of the section label ("CSE302-B" -> "B")."""
        return self.section.rsplit("-", 1)[-1]


@dataclass
class Enrollment:
    """Represents a student holding a seat in an offering."""
    id: str
    student_id: str
    offering_id: str
    grade: Optional[float] = 0.0


@dataclass
class EnrollmentRecord:
    """An enrollment joined to its offering and course."""
    enrollment: Enrollment
    offering: CourseOffering
    course: Course

    @property
    def credits(self) -> float:
        return self.course.credits


@dataclass
class StudentSchedule:
    """A student's enrollments for one semester."""
    student_id: str
    records: List[EnrollmentRecord] = field(default_factory=list)

    @property
    def total_credits(self) -> float:
        return sum(r.credits for r in self.records)

    @property
    def course_ids(self) -> List[str]:
        return [r.course.id for r in self.records]

    def holds_course(self, course_id: str) -> bool:
        """Check if the student holds any section of a course."""
        return course_id in self.course_ids
