"""
SQLAlchemy-backed store.

Seat accounting relies on a conditional UPDATE
(``filled = filled + 1 WHERE id = ? AND filled < capacity``) whose row count
tells whether the seat was taken, issued inside the same transaction as the
enrollment insert.
"""
import logging
import uuid
from contextlib import contextmanager
from typing import Iterator, List, Optional

from sqlalchemy import (
    Float, ForeignKey, Integer, String, UniqueConstraint, create_engine, delete, select, update,
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from ..exceptions import (
    DuplicateEnrollmentError, MalformedInputError, NotFoundError, RegistrarError, SeatUnavailableError, StoreError,
)
from ..models.entities import Course, CourseOffering, Enrollment, EnrollmentRecord, Semester
from .store import EnrollmentStore

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class CourseRow(Base):
    __tablename__ = "courses"
    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    course_code: Mapped[str] = mapped_column(String, index=True)
    name: Mapped[str] = mapped_column(String)
    credit: Mapped[float] = mapped_column(Float, default=3.0)
    department: Mapped[str] = mapped_column(String, default="")


class SemesterRow(Base):
    __tablename__ = "semesters"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String)


class OfferingRow(Base):
    __tablename__ = "course_offerings"
    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    course_id: Mapped[str] = mapped_column(String, ForeignKey("courses.id"), index=True)
    section: Mapped[str] = mapped_column(String)
    day_slot: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    time_slot: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    room_no: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    seats: Mapped[int] = mapped_column(Integer, default=30)
    filled_seats: Mapped[int] = mapped_column(Integer, default=0)
    faculty_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    class_type: Mapped[str] = mapped_column(String, default="Class")
    semester_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("semesters.id"), nullable=True)


class EnrollmentRow(Base):
    __tablename__ = "enrollments"
    __table_args__ = (
        UniqueConstraint("student_id", "class_id", name="uq_enrollment_student_class"),
        # one section of a course per student and semester
        UniqueConstraint("student_id", "course_id", "semester_id", name="uq_enrollment_student_course_term"),
    )
    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    student_id: Mapped[str] = mapped_column(String, index=True)
    class_id: Mapped[str] = mapped_column(String, ForeignKey("course_offerings.id"), index=True)
    course_id: Mapped[str] = mapped_column(String, ForeignKey("courses.id"))
    semester_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    grade: Mapped[Optional[float]] = mapped_column(Float, nullable=True, default=0.0)


def _course(row: CourseRow) -> Course:
    return Course(id=row.id, code=row.course_code, name=row.name,
                  credits=row.credit, department=row.department)


def _offering(row: OfferingRow) -> CourseOffering:
    return CourseOffering(
        id=row.id, course_id=row.course_id, section=row.section,
        day_slot=row.day_slot, time_slot=row.time_slot, room=row.room_no,
        capacity=row.seats, filled=row.filled_seats, instructor_id=row.faculty_id,
        class_type=row.class_type, semester_id=row.semester_id,
    )


def _enrollment(row: EnrollmentRow) -> Enrollment:
    return Enrollment(id=row.id, student_id=row.student_id, offering_id=row.class_id, grade=row.grade)


class SqlStore(EnrollmentStore):
    """Store backed by any database SQLAlchemy can reach."""

    def __init__(self, database_url: str, create_tables: bool = True, echo: bool = False):
        engine_kwargs = {"future": True, "echo": echo}
        if database_url.startswith("sqlite") and ":memory:" in database_url:
            # one shared connection so every session sees the same in-memory database
            engine_kwargs.update(connect_args={"check_same_thread": False}, poolclass=StaticPool)

        self.engine = create_engine(database_url, **engine_kwargs)
        self.SessionLocal = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False, future=True)

        if create_tables:
            Base.metadata.create_all(self.engine)
        logger.info(f"SQL store connected to {self.engine.url.render_as_string(hide_password=True)}")

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        """Session inside one transaction; SQLAlchemy errors surface as StoreError."""
        try:
            with self.SessionLocal.begin() as session:
                yield session
        except RegistrarError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Database error: {str(e)}")
            raise StoreError(str(e)) from e

    # -- catalog -------------------------------------------------------------

    def list_courses(self) -> List[Course]:
        with self._transaction() as session:
            return [_course(row) for row in session.scalars(select(CourseRow))]

    def get_course(self, course_id: str) -> Optional[Course]:
        with self._transaction() as session:
            row = session.get(CourseRow, course_id)
            return _course(row) if row else None

    def add_course(self, course: Course) -> Course:
        with self._transaction() as session:
            row = CourseRow(id=course.id, course_code=course.code, name=course.name,
                            credit=course.credits, department=course.department)
            session.add(row)
            session.flush()
            return _course(row)

    def list_semesters(self) -> List[Semester]:
        with self._transaction() as session:
            rows = session.scalars(select(SemesterRow).order_by(SemesterRow.id))
            return [Semester(id=row.id, name=row.name) for row in rows]

    def add_semester(self, semester: Semester) -> Semester:
        with self._transaction() as session:
            session.merge(SemesterRow(id=semester.id, name=semester.name))
            return Semester(id=semester.id, name=semester.name)

    def list_offerings(self, semester_id: Optional[int] = None) -> List[CourseOffering]:
        with self._transaction() as session:
            stmt = select(OfferingRow)
            if semester_id is not None:
                stmt = stmt.where(OfferingRow.semester_id == semester_id)
            return [_offering(row) for row in session.scalars(stmt)]

    def get_offering(self, offering_id: str) -> Optional[CourseOffering]:
        with self._transaction() as session:
            row = session.get(OfferingRow, offering_id)
            return _offering(row) if row else None

    def add_offering(self, offering: CourseOffering) -> CourseOffering:
        with self._transaction() as session:
            if session.get(CourseRow, offering.course_id) is None:
                raise NotFoundError(f"Course {offering.course_id} not found")
            if offering.id and session.get(OfferingRow, offering.id) is not None:
                raise MalformedInputError(f"Offering {offering.id} already exists")
            row = OfferingRow(
                id=offering.id or str(uuid.uuid4()), course_id=offering.course_id,
                section=offering.section, day_slot=offering.day_slot,
                time_slot=offering.time_slot, room_no=offering.room,
                seats=offering.capacity, filled_seats=0, faculty_id=offering.instructor_id,
                class_type=offering.class_type, semester_id=offering.semester_id,
            )
            session.add(row)
            session.flush()
            return _offering(row)

    # -- enrollments ---------------------------------------------------------

    def list_enrollments(self) -> List[Enrollment]:
        with self._transaction() as session:
            return [_enrollment(row) for row in session.scalars(select(EnrollmentRow))]

    def get_enrollment(self, enrollment_id: str) -> Optional[Enrollment]:
        with self._transaction() as session:
            row = session.get(EnrollmentRow, enrollment_id)
            return _enrollment(row) if row else None

    def student_enrollments(self, student_id: str) -> List[EnrollmentRecord]:
        with self._transaction() as session:
            stmt = (
                select(EnrollmentRow, OfferingRow, CourseRow)
                .join(OfferingRow, OfferingRow.id == EnrollmentRow.class_id)
                .join(CourseRow, CourseRow.id == OfferingRow.course_id)
                .where(EnrollmentRow.student_id == student_id)
            )
            return [
                EnrollmentRecord(_enrollment(e), _offering(o), _course(c))
                for e, o, c in session.execute(stmt)
            ]

    def commit_admission(self, student_id: str, offering_ids: List[str],
                         grade: Optional[float] = 0.0) -> List[Enrollment]:
        try:
            with self._transaction() as session:
                created = []
                for offering_id in offering_ids:
                    offering = session.get(OfferingRow, offering_id)
                    if offering is None:
                        raise NotFoundError(f"Offering {offering_id} not found")

                    same_term = (EnrollmentRow.semester_id.is_(None) if offering.semester_id is None
                                 else EnrollmentRow.semester_id == offering.semester_id)
                    held = session.scalar(
                        select(EnrollmentRow.id)
                        .where(EnrollmentRow.student_id == student_id,
                               EnrollmentRow.course_id == offering.course_id, same_term)
                        .limit(1)
                    )
                    if held is not None:
                        raise DuplicateEnrollmentError(student_id, offering_id)

                    result = session.execute(
                        update(OfferingRow)
                        .where(OfferingRow.id == offering_id,
                               OfferingRow.filled_seats < OfferingRow.seats)
                        .values(filled_seats=OfferingRow.filled_seats + 1)
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount != 1:
                        raise SeatUnavailableError(offering_id)

                    row = EnrollmentRow(student_id=student_id, class_id=offering_id,
                                        course_id=offering.course_id, semester_id=offering.semester_id,
                                        grade=grade)
                    session.add(row)
                    session.flush()
                    created.append(_enrollment(row))

                logger.info(f"Admitted student {student_id} to offerings {offering_ids}")
                return created
        except StoreError as e:
            # a concurrent admission committed the same course first
            if isinstance(e.__cause__, IntegrityError):
                raise DuplicateEnrollmentError(student_id, ", ".join(offering_ids)) from e
            raise

    def commit_withdrawal(self, enrollment_ids: List[str]) -> List[Enrollment]:
        with self._transaction() as session:
            removed = []
            for enrollment_id in enrollment_ids:
                row = session.get(EnrollmentRow, enrollment_id)
                if row is None:
                    continue
                enrollment = _enrollment(row)

                # a concurrent withdrawal may have deleted the row since it was read
                result = session.execute(
                    delete(EnrollmentRow)
                    .where(EnrollmentRow.id == enrollment_id)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    continue

                session.execute(
                    update(OfferingRow)
                    .where(OfferingRow.id == enrollment.offering_id, OfferingRow.filled_seats > 0)
                    .values(filled_seats=OfferingRow.filled_seats - 1)
                    .execution_options(synchronize_session=False)
                )
                removed.append(enrollment)

            if removed:
                logger.info(f"Withdrew enrollments {[e.id for e in removed]}")
            return removed

    def set_grade(self, enrollment_id: str, grade: Optional[float]) -> Enrollment:
        with self._transaction() as session:
            row = session.get(EnrollmentRow, enrollment_id)
            if row is None:
                raise NotFoundError(f"Enrollment {enrollment_id} not found")
            row.grade = grade
            session.flush()
            return _enrollment(row)
