"""
Tests for the schedule catalog and section labels.
"""
import pytest

from registrar.exceptions import MalformedInputError
from registrar.rules import catalog
from registrar.rules.sections import next_section_label
from registrar.rules.timeslots import parse_time_slot


class TestTimeSlotCatalog:
    """Test generated time slots."""

    def test_class_slots(self):
        assert catalog.class_time_slots() == [
            "08:30 - 10:00",
            "10:10 - 11:40",
            "11:50 - 13:20",
            "13:30 - 15:00",
            "15:10 - 16:40",
            "16:50 - 18:20",
        ]

    def test_two_hour_lab_slots(self):
        assert catalog.lab_time_slots(1) == [
            "08:30 - 10:30",
            "10:40 - 12:40",
            "12:50 - 14:50",
            "15:00 - 17:00",
        ]

    def test_three_hour_lab_slots_for_one_and_a_half_credits(self):
        slots = catalog.lab_time_slots(1.5)
        assert slots == ["08:30 - 11:30", "11:40 - 14:40", "14:50 - 17:50"]
        assert catalog.lab_duration(1.5) == 180

    def test_lab_slots_end_before_six(self):
        for credits in (1, 1.5):
            for text in catalog.lab_time_slots(credits):
                assert parse_time_slot(text).end < 18 * 60

    def test_time_slots_for(self):
        assert catalog.time_slots_for("Class") == catalog.class_time_slots()
        assert catalog.time_slots_for("Lab", 1.5) == catalog.lab_time_slots(1.5)
        assert catalog.time_slots_for("Lab") == catalog.lab_time_slots(1)

    def test_unknown_class_type(self):
        with pytest.raises(ValueError):
            catalog.time_slots_for("Seminar")


class TestRoomsAndDays:
    """Test room and day-slot options."""

    def test_rooms(self):
        rooms = catalog.room_numbers()
        assert len(rooms) == 80
        assert rooms[0] == "A-101"
        assert rooms[4] == "A-105"
        assert rooms[5] == "A-201"
        assert rooms[-1] == "D-405"

    def test_day_slots(self):
        assert catalog.day_slot_options() == ["ST", "TR", "SR", "MW"]

    def test_day_slots_are_copies(self):
        catalog.day_slot_options().append("XX")
        assert "XX" not in catalog.day_slot_options()


class TestSectionLabels:
    """Test next_section_label."""

    def test_first_section(self):
        assert next_section_label("CSE110", []) == "CSE110-A"

    def test_next_letter(self):
        assert next_section_label("CSE110", ["CSE110-A", "CSE110-B"]) == "CSE110-C"

    def test_reuses_gap(self):
        assert next_section_label("CSE110", ["CSE110-A", "CSE110-C"]) == "CSE110-B"

    def test_ignores_other_courses(self):
        assert next_section_label("CSE110", ["CSE110L-A", "MAT120-A"]) == "CSE110-A"

    def test_exhausted(self):
        used = [f"CSE110-{chr(ord('A') + i)}" for i in range(26)]
        with pytest.raises(MalformedInputError):
            next_section_label("CSE110", used)
