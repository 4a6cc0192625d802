from .entities import (
    Role,
    RequestContext,
    Semester,
    Course,
    CourseOffering,
    Enrollment,
    EnrollmentRecord,
    StudentSchedule,
)

__all__ = [
    "Role",
    "RequestContext",
    "Semester",
    "Course",
    "CourseOffering",
    "Enrollment",
    "EnrollmentRecord",
    "StudentSchedule",
]
