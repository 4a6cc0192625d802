"""
Tests for the admission evaluator.
"""
import pytest

from registrar.exceptions import MalformedInputError
from registrar.models.entities import Course, CourseOffering, Enrollment, EnrollmentRecord, StudentSchedule
from registrar.rules.admission import (
    AdmissionEvaluator, Candidate, ClashPolicy, RejectReason,
)


def make_candidate(course_id, code, credits=3.0, day_slot="ST", time_slot="08:30 - 10:00",
                   capacity=30, filled=0, offering_id=None, name=None):
    course = Course(id=course_id, code=code, name=name or f"{code} course", credits=credits)
    offering = CourseOffering(
        id=offering_id or f"O-{course_id}",
        course_id=course_id,
        section=f"{code}-A",
        day_slot=day_slot,
        time_slot=time_slot,
        capacity=capacity,
        filled=filled,
        semester_id=1,
    )
    return Candidate(offering, course)


def make_schedule(*candidates, student_id="S1"):
    records = [
        EnrollmentRecord(Enrollment(id=f"E{i}", student_id=student_id, offering_id=c.offering.id), c.offering, c.course)
        for i, c in enumerate(candidates)
    ]
    return StudentSchedule(student_id, records)


class TestAdmissionEvaluator:
    """Test the exact-match admission rules."""

    @pytest.fixture
    def evaluator(self):
        return AdmissionEvaluator(max_credits=15, clash_policy=ClashPolicy.EXACT_MATCH)

    def test_admit_into_empty_schedule(self, evaluator):
        candidate = make_candidate("C1", "CSE110")
        decision = evaluator.evaluate(candidate, make_schedule())

        assert decision.admitted
        assert decision.reason is None
        assert decision.offering_ids == ["O-C1"]

    def test_already_enrolled_in_same_course(self, evaluator):
        held = make_candidate("C1", "CSE110", offering_id="O-A")
        other_section = make_candidate("C1", "CSE110", offering_id="O-B", day_slot="MW")

        decision = evaluator.evaluate(other_section, make_schedule(held))

        assert not decision.admitted
        assert decision.reason == RejectReason.ALREADY_ENROLLED

    def test_credit_limit_allows_exactly_fifteen(self, evaluator):
        schedule = make_schedule(*[
            make_candidate(f"C{i}", f"X{i}", day_slot="MW", time_slot=f"{8 + i}:00 - {8 + i}:50")
            for i in range(4)
        ])
        candidate = make_candidate("C9", "CSE330", credits=3)

        assert schedule.total_credits == 12
        assert evaluator.evaluate(candidate, schedule).admitted

    def test_credit_limit_exceeded(self, evaluator):
        schedule = make_schedule(*[
            make_candidate(f"C{i}", f"X{i}", day_slot="MW", time_slot=f"{8 + i}:00 - {8 + i}:50")
            for i in range(4)
        ])
        candidate = make_candidate("C9", "CSE330", credits=4)

        decision = evaluator.evaluate(candidate, schedule)

        assert not decision.admitted
        assert decision.reason == RejectReason.CREDIT_LIMIT_EXCEEDED
        assert "You have 12 credits" in decision.detail
        assert "Maximum is 15" in decision.detail

    def test_current_credits_override(self, evaluator):
        candidate = make_candidate("C1", "CSE110", credits=3)
        decision = evaluator.evaluate(candidate, make_schedule(), current_credits=13)

        assert decision.reason == RejectReason.CREDIT_LIMIT_EXCEEDED

    def test_exact_time_clash(self, evaluator):
        held = make_candidate("C1", "CSE110", day_slot="ST", time_slot="08:30 - 10:00")
        candidate = make_candidate("C2", "MAT120", day_slot="ST", time_slot="08:30 - 10:00")

        decision = evaluator.evaluate(candidate, make_schedule(held))

        assert decision.reason == RejectReason.TIME_CLASH
        assert "CSE110" in decision.detail

    def test_exact_policy_ignores_partial_overlap(self, evaluator):
        held = make_candidate("C1", "CSE110", day_slot="ST", time_slot="09:00 - 10:30")
        candidate = make_candidate("C2", "MAT120", day_slot="SR", time_slot="10:00 - 11:30")

        assert evaluator.evaluate(candidate, make_schedule(held)).admitted

    def test_no_seats(self, evaluator):
        candidate = make_candidate("C1", "CSE110", capacity=30, filled=30)
        decision = evaluator.evaluate(candidate, make_schedule())

        assert decision.reason == RejectReason.NO_SEATS_AVAILABLE
        assert "CSE110-A" in decision.detail

    def test_precedence_credit_before_clash_and_seats(self, evaluator):
        held = [
            make_candidate(f"C{i}", f"X{i}", day_slot="MW", time_slot=f"{8 + i}:00 - {8 + i}:50")
            for i in range(4)
        ]
        candidate = make_candidate("C9", "CSE330", credits=4, day_slot="MW",
                                   time_slot="8:00 - 8:50", filled=30)

        decision = evaluator.evaluate(candidate, make_schedule(*held))

        assert decision.reason == RejectReason.CREDIT_LIMIT_EXCEEDED

    def test_precedence_already_enrolled_first(self, evaluator):
        held = make_candidate("C1", "CSE110", credits=15)
        candidate = make_candidate("C1", "CSE110", offering_id="O-other", filled=30)

        decision = evaluator.evaluate(candidate, make_schedule(held))

        assert decision.reason == RejectReason.ALREADY_ENROLLED

    def test_precedence_clash_before_seats(self, evaluator):
        held = make_candidate("C1", "CSE110")
        candidate = make_candidate("C2", "MAT120", filled=30)

        decision = evaluator.evaluate(candidate, make_schedule(held))

        assert decision.reason == RejectReason.TIME_CLASH

    def test_unscheduled_offering_never_clashes(self, evaluator):
        held = make_candidate("C1", "CSE110", day_slot=None, time_slot=None)
        candidate = make_candidate("C2", "MAT120", day_slot=None, time_slot=None)

        assert evaluator.evaluate(candidate, make_schedule(held)).admitted

    def test_decision_to_dict(self, evaluator):
        candidate = make_candidate("C1", "CSE110", filled=30)
        result = evaluator.evaluate(candidate, make_schedule()).to_dict()

        assert result == {
            "admitted": False,
            "reason": "NO_SEATS_AVAILABLE",
            "detail": "No seats available in CSE110-A.",
            "offering_ids": [],
        }


class TestOverlapPolicy:
    """Test the overlap clash policy."""

    @pytest.fixture
    def evaluator(self):
        return AdmissionEvaluator(max_credits=15, clash_policy=ClashPolicy.OVERLAP)

    def test_partial_overlap_on_shared_day(self, evaluator):
        held = make_candidate("C1", "CSE110", day_slot="ST", time_slot="09:00 - 10:30")
        candidate = make_candidate("C2", "MAT120", day_slot="SR", time_slot="10:00 - 11:30")

        decision = evaluator.evaluate(candidate, make_schedule(held))

        assert decision.reason == RejectReason.TIME_CLASH

    def test_back_to_back_is_admitted(self, evaluator):
        held = make_candidate("C1", "CSE110", day_slot="ST", time_slot="08:30 - 10:00")
        candidate = make_candidate("C2", "MAT120", day_slot="ST", time_slot="10:00 - 11:30")

        assert evaluator.evaluate(candidate, make_schedule(held)).admitted

    def test_no_shared_day(self, evaluator):
        held = make_candidate("C1", "CSE110", day_slot="ST", time_slot="08:30 - 10:00")
        candidate = make_candidate("C2", "MAT120", day_slot="MW", time_slot="08:30 - 10:00")

        assert evaluator.evaluate(candidate, make_schedule(held)).admitted

    def test_twelve_hour_against_twenty_four_hour(self, evaluator):
        held = make_candidate("C1", "CSE110", day_slot="MW", time_slot="1:00 PM - 2:30 PM")
        candidate = make_candidate("C2", "MAT120", day_slot="MW", time_slot="14:00 - 15:30")

        assert evaluator.evaluate(candidate, make_schedule(held)).reason == RejectReason.TIME_CLASH

    def test_unparseable_candidate_slot(self, evaluator):
        held = make_candidate("C1", "CSE110")
        candidate = make_candidate("C2", "MAT120", time_slot="TBA")

        with pytest.raises(MalformedInputError):
            evaluator.evaluate(candidate, make_schedule(held))

    def test_unparseable_enrolled_slot_is_skipped(self, evaluator):
        held = make_candidate("C1", "CSE110", time_slot="TBA")
        candidate = make_candidate("C2", "MAT120")

        assert evaluator.evaluate(candidate, make_schedule(held)).admitted

    def test_policy_from_string(self):
        assert AdmissionEvaluator(clash_policy="overlap").clash_policy == ClashPolicy.OVERLAP


class TestPairedLab:
    """Test admission of a lecture together with its lab."""

    @pytest.fixture
    def evaluator(self):
        return AdmissionEvaluator(max_credits=15, clash_policy=ClashPolicy.EXACT_MATCH)

    def test_lab_credits_are_summed(self, evaluator):
        held = [
            make_candidate(f"C{i}", f"X{i}", day_slot="MW", time_slot=f"{8 + i}:00 - {8 + i}:50")
            for i in range(4)
        ]
        lecture = make_candidate("L1", "CSE110", credits=3, day_slot="ST")
        lab = make_candidate("L2", "CSE110L", credits=1, day_slot="TR", name="CSE110 course Lab")

        decision = evaluator.evaluate(lecture, make_schedule(*held), companion=lab)

        assert decision.reason == RejectReason.CREDIT_LIMIT_EXCEEDED
        assert "and 1 credits for the lab" in decision.detail
        assert "totaling 4 credits" in decision.detail

    def test_admits_both(self, evaluator):
        lecture = make_candidate("L1", "CSE110", credits=3, day_slot="ST")
        lab = make_candidate("L2", "CSE110L", credits=1, day_slot="TR")

        decision = evaluator.evaluate(lecture, make_schedule(), companion=lab)

        assert decision.admitted
        assert decision.offering_ids == ["O-L1", "O-L2"]

    def test_lab_clash(self, evaluator):
        held = make_candidate("C1", "MAT120", day_slot="TR", time_slot="08:30 - 10:00")
        lecture = make_candidate("L1", "CSE110", day_slot="ST")
        lab = make_candidate("L2", "CSE110L", credits=1, day_slot="TR", time_slot="08:30 - 10:00")

        decision = evaluator.evaluate(lecture, make_schedule(held), companion=lab)

        assert decision.reason == RejectReason.TIME_CLASH
        assert "lab" in decision.detail

    def test_lab_full(self, evaluator):
        lecture = make_candidate("L1", "CSE110", day_slot="ST")
        lab = make_candidate("L2", "CSE110L", credits=1, day_slot="TR", capacity=20, filled=20)

        decision = evaluator.evaluate(lecture, make_schedule(), companion=lab)

        assert decision.reason == RejectReason.NO_SEATS_AVAILABLE
        assert "lab" in decision.detail
