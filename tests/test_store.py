"""
Tests for the in-memory and SQLAlchemy stores.
"""
import pytest

from registrar.data.sql_store import SqlStore
from registrar.data.store import InMemoryStore
from registrar.exceptions import (DuplicateEnrollmentError, MalformedInputError, NotFoundError,
                                   SeatUnavailableError)
from registrar.models.entities import Course, CourseOffering, Semester


def seed(store):
    """Two courses with one offering each: O1 has one seat left, O2 is full."""
    store.add_semester(Semester(id=1, name="Spring 2026"))
    store.add_course(Course(id="C1", code="CSE110", name="Programming Language I", credits=3))
    store.add_course(Course(id="C2", code="CSE110L", name="Programming Language I Lab", credits=1))
    store.add_offering(CourseOffering(id="O1", course_id="C1", section="CSE110-A", day_slot="ST",
                                      time_slot="08:30 - 10:00", capacity=2, semester_id=1))
    store.add_offering(CourseOffering(id="O2", course_id="C2", section="CSE110L-A", day_slot="MW",
                                      time_slot="10:40 - 12:40", capacity=1, semester_id=1,
                                      class_type="Lab"))
    store.commit_admission("S0", ["O1"])
    store.commit_admission("S9", ["O2"])
    return store


@pytest.fixture(params=["memory", "sql"])
def store(request):
    """Each test runs against both store implementations."""
    if request.param == "memory":
        return seed(InMemoryStore())
    return seed(SqlStore("sqlite:///:memory:"))


class TestEnrollmentStore:
    """Behaviour shared by every store."""

    def test_seeded_counts(self, store):
        assert store.get_offering("O1").filled == 1
        assert store.get_offering("O2").filled == 1
        assert len(store.list_enrollments()) == 2

    def test_add_offering_starts_empty(self, store):
        created = store.add_offering(CourseOffering(id="", course_id="C1", section="CSE110-B",
                                                    capacity=5, filled=3))
        assert created.id
        assert created.filled == 0

    def test_add_offering_unknown_course(self, store):
        with pytest.raises(NotFoundError):
            store.add_offering(CourseOffering(id="O9", course_id="missing", section="X-A"))

    def test_add_offering_existing_id_rejected(self, store):
        with pytest.raises(MalformedInputError):
            store.add_offering(CourseOffering(id="O1", course_id="C1", section="CSE110-Z", capacity=40))

        offering = store.get_offering("O1")
        assert offering.section == "CSE110-A"
        assert offering.filled == 1

    def test_list_offerings_by_semester(self, store):
        assert {o.id for o in store.list_offerings(1)} == {"O1", "O2"}
        assert store.list_offerings(2) == []

    def test_commit_admission(self, store):
        created = store.commit_admission("S1", ["O1"])

        assert len(created) == 1
        assert created[0].student_id == "S1"
        assert created[0].offering_id == "O1"
        assert store.get_offering("O1").filled == 2

    def test_full_offering_rejected(self, store):
        with pytest.raises(SeatUnavailableError) as excinfo:
            store.commit_admission("S1", ["O2"])

        assert excinfo.value.offering_id == "O2"
        assert store.get_offering("O2").filled == 1

    def test_second_offering_full_rolls_back_first(self, store):
        with pytest.raises(SeatUnavailableError):
            store.commit_admission("S1", ["O1", "O2"])

        assert store.get_offering("O1").filled == 1
        assert store.get_offering("O2").filled == 1
        assert store.student_enrollments("S1") == []

    def test_duplicate_enrollment(self, store):
        with pytest.raises(DuplicateEnrollmentError):
            store.commit_admission("S0", ["O1"])

        assert store.get_offering("O1").filled == 1

    def test_second_section_of_held_course_rejected(self, store):
        store.add_offering(CourseOffering(id="O3", course_id="C1", section="CSE110-B", day_slot="MW",
                                          time_slot="13:30 - 15:00", capacity=5, semester_id=1))

        with pytest.raises(DuplicateEnrollmentError) as excinfo:
            store.commit_admission("S0", ["O3"])

        assert excinfo.value.offering_id == "O3"
        assert store.get_offering("O3").filled == 0
        assert [r.offering.id for r in store.student_enrollments("S0")] == ["O1"]

    def test_same_course_in_another_semester(self, store):
        store.add_semester(Semester(id=2, name="Fall 2026"))
        store.add_offering(CourseOffering(id="O4", course_id="C1", section="CSE110-A", day_slot="ST",
                                          time_slot="08:30 - 10:00", capacity=5, semester_id=2))

        created = store.commit_admission("S0", ["O4"])

        assert [e.offering_id for e in created] == ["O4"]
        assert store.get_offering("O4").filled == 1

    def test_unknown_offering(self, store):
        with pytest.raises(NotFoundError):
            store.commit_admission("S1", ["nope"])

    def test_student_enrollments_joined(self, store):
        records = store.student_enrollments("S0")

        assert len(records) == 1
        assert records[0].offering.id == "O1"
        assert records[0].course.code == "CSE110"
        assert records[0].credits == 3

    def test_withdrawal_returns_seat(self, store):
        enrollment = store.student_enrollments("S0")[0].enrollment

        removed = store.commit_withdrawal([enrollment.id])

        assert [e.id for e in removed] == [enrollment.id]
        assert store.get_offering("O1").filled == 0
        assert store.get_enrollment(enrollment.id) is None

    def test_repeated_withdrawal_changes_nothing(self, store):
        enrollment = store.student_enrollments("S0")[0].enrollment
        store.commit_withdrawal([enrollment.id])

        assert store.commit_withdrawal([enrollment.id]) == []
        assert store.get_offering("O1").filled == 0

    def test_set_grade(self, store):
        enrollment = store.student_enrollments("S0")[0].enrollment

        assert store.set_grade(enrollment.id, 3.7).grade == 3.7
        assert store.get_enrollment(enrollment.id).grade == 3.7
        assert store.set_grade(enrollment.id, None).grade is None

    def test_set_grade_missing(self, store):
        with pytest.raises(NotFoundError):
            store.set_grade("missing", 3.0)

    def test_course_map(self, store):
        assert set(store.course_map()) == {"C1", "C2"}

    def test_semesters(self, store):
        store.add_semester(Semester(id=2, name="Fall 2026"))
        assert [s.id for s in store.list_semesters()] == [1, 2]


class TestInMemoryStoreCopies:
    """Reads from the in-memory store never expose stored rows."""

    def test_mutating_a_read_does_not_change_the_store(self):
        store = seed(InMemoryStore())

        offering = store.get_offering("O1")
        offering.filled = 2

        assert store.get_offering("O1").filled == 1
