"""
Data converter module.

Handles conversions between different data formats:
- DataFrame to domain objects
- Domain objects to DataFrame
- Enrollment records to report tables (routine, grade report, seat utilization)
"""
import pandas as pd
import numpy as np
from typing import Any, Dict, Iterable, Optional
import logging

from .. import config
from ..models.entities import Course, CourseOffering, Enrollment, EnrollmentRecord, Semester
from ..rules.timeslots import WEEK_ORDER, days_for_slot, format_minutes_12h, parse_time_slot

logger = logging.getLogger(__name__)

# Sun..Thu is the regular teaching week; other days appear only when used
ROUTINE_DAYS = WEEK_ORDER[:5]


def _text(row: pd.Series, column: str) -> Optional[str]:
    """Cell value as a stripped string, or None when missing/blank."""
    value = row.get(column)
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    text = str(value).strip()
    return text or None


def _number(row: pd.Series, column: str, default: Optional[float] = None) -> Optional[float]:
    value = row.get(column)
    if value is None or pd.isna(value):
        return default
    return float(value)


class DataConverter:
    """
    Converts between different data representations used in the system.

    Responsibilities:
    - Convert CSV/DataFrame data to domain model objects
    - Convert domain model objects back to DataFrames for output
    - Generate reports from enrollment records
    """

    @staticmethod
    def convert_courses(courses_df: pd.DataFrame) -> Dict[str, Course]:
        """
        Convert courses DataFrame to Course objects.

        Args:
            courses_df: DataFrame containing course data

        Returns:
            Dictionary mapping course IDs to Course objects
        """
        courses = {}

        for _, row in courses_df.iterrows():
            course_id = str(row['Course ID'])
            course = Course(
                id=course_id,
                code=_text(row, 'Course Code') or course_id,
                name=_text(row, 'Name') or '',
                credits=_number(row, 'Credits', 3.0),
                department=_text(row, 'Department') or ''
            )
            courses[course.id] = course

        return courses

    @staticmethod
    def convert_semesters(semesters_df: pd.DataFrame) -> Dict[int, Semester]:
        semesters = {}

        for _, row in semesters_df.iterrows():
            semester_id = int(row['Semester ID'])
            semesters[semester_id] = Semester(
                id=semester_id,
                name=_text(row, 'Name') or f"Semester {semester_id}"
            )

        return semesters

    @staticmethod
    def convert_offerings(offerings_df: pd.DataFrame) -> Dict[str, CourseOffering]:
        """
        Convert offerings DataFrame to CourseOffering objects.

        Filled counts above capacity are clamped with a warning.

        Args:
            offerings_df: DataFrame containing offering data

        Returns:
            Dictionary mapping offering IDs to CourseOffering objects
        """
        offerings = {}

        for _, row in offerings_df.iterrows():
            offering_id = str(row['Offering ID'])
            capacity = int(_number(row, 'Capacity', config.DEFAULT_SEATS))
            filled = int(_number(row, 'Filled', 0))

            if filled > capacity:
                logger.warning(f"Offering {offering_id} filled {filled} exceeds capacity {capacity}, clamping")
                filled = capacity

            semester = _number(row, 'Semester ID')

            offering = CourseOffering(
                id=offering_id,
                course_id=str(row['Course ID']),
                section=_text(row, 'Section') or offering_id,
                day_slot=_text(row, 'Day Slot'),
                time_slot=_text(row, 'Time Slot'),
                room=_text(row, 'Room'),
                capacity=capacity,
                filled=max(0, filled),
                instructor_id=_text(row, 'Instructor ID'),
                class_type=_text(row, 'Class Type') or 'Class',
                semester_id=int(semester) if semester is not None else None
            )
            offerings[offering.id] = offering

        return offerings

    @staticmethod
    def convert_enrollments(enrollments_df: pd.DataFrame) -> Dict[str, Enrollment]:
        enrollments = {}

        for _, row in enrollments_df.iterrows():
            enrollment = Enrollment(
                id=str(row['Enrollment ID']),
                student_id=str(row['Student ID']),
                offering_id=str(row['Offering ID']),
                grade=_number(row, 'Grade')
            )
            enrollments[enrollment.id] = enrollment

        return enrollments

    @staticmethod
    def convert_to_courses_df(courses: Iterable[Course]) -> pd.DataFrame:
        return pd.DataFrame([{
            'Course ID': c.id,
            'Course Code': c.code,
            'Name': c.name,
            'Credits': c.credits,
            'Department': c.department
        } for c in courses], columns=['Course ID', 'Course Code', 'Name', 'Credits', 'Department'])

    @staticmethod
    def convert_to_semesters_df(semesters: Iterable[Semester]) -> pd.DataFrame:
        return pd.DataFrame([{'Semester ID': s.id, 'Name': s.name} for s in semesters],
                            columns=['Semester ID', 'Name'])

    @staticmethod
    def convert_to_offerings_df(offerings: Iterable[CourseOffering]) -> pd.DataFrame:
        """
        Convert CourseOffering objects to the offerings CSV layout.

        Returns:
            DataFrame with one row per offering
        """
        columns = ['Offering ID', 'Course ID', 'Section', 'Day Slot', 'Time Slot', 'Room',
                   'Capacity', 'Filled', 'Instructor ID', 'Class Type', 'Semester ID']
        rows = []

        for o in offerings:
            rows.append({
                'Offering ID': o.id,
                'Course ID': o.course_id,
                'Section': o.section,
                'Day Slot': o.day_slot or "",
                'Time Slot': o.time_slot or "",
                'Room': o.room or "",
                'Capacity': o.capacity,
                'Filled': o.filled,
                'Instructor ID': o.instructor_id or "",
                'Class Type': o.class_type,
                'Semester ID': o.semester_id
            })

        df = pd.DataFrame(rows, columns=columns)
        df['Semester ID'] = df['Semester ID'].astype('Int64')
        return df

    @staticmethod
    def convert_to_enrollments_df(enrollments: Iterable[Enrollment]) -> pd.DataFrame:
        return pd.DataFrame([{
            'Enrollment ID': e.id,
            'Student ID': e.student_id,
            'Offering ID': e.offering_id,
            'Grade': e.grade
        } for e in enrollments], columns=['Enrollment ID', 'Student ID', 'Offering ID', 'Grade'])

    @staticmethod
    def convert_to_schedule_df(records: Iterable[EnrollmentRecord]) -> pd.DataFrame:
        """
        Flat listing of a student's enrollments, sorted by course code.

        Returns:
            DataFrame with columns: Enrollment ID, Course Code, Course, Section,
            Day Slot, Time Slot, Room, Credits, Grade
        """
        columns = ['Enrollment ID', 'Course Code', 'Course', 'Section', 'Day Slot',
                   'Time Slot', 'Room', 'Credits', 'Grade']
        rows = [{
            'Enrollment ID': r.enrollment.id,
            'Course Code': r.course.code,
            'Course': r.course.name,
            'Section': r.offering.section,
            'Day Slot': r.offering.day_slot or "",
            'Time Slot': r.offering.time_slot or "",
            'Room': r.offering.room or "",
            'Credits': r.course.credits,
            'Grade': r.enrollment.grade
        } for r in records]

        return pd.DataFrame(rows, columns=columns).sort_values('Course Code', kind='stable').reset_index(drop=True)

    @staticmethod
    def convert_to_routine_df(records: Iterable[EnrollmentRecord]) -> pd.DataFrame:
        """
        Build a weekly routine grid from a student's enrollments.

        Rows are the intervals between consecutive class start/end times,
        columns are weekdays. A cell names the class running on that day
        during that interval. Offerings without a readable slot are skipped.

        Returns:
            DataFrame indexed by "start - end" labels, one column per weekday
        """
        classes = []
        for r in records:
            slot = parse_time_slot(r.offering.time_slot)
            days = days_for_slot(r.offering.day_slot)
            if slot is None or not days:
                logger.warning(f"Offering {r.offering.id} has no schedulable slot, leaving it out of the routine")
                continue
            label = f"{r.course.code} {r.offering.section}"
            if r.offering.room:
                label += f" ({r.offering.room})"
            classes.append((slot, days, label))

        used_days = {day for _, days, _ in classes for day in days}
        columns = [day for day in WEEK_ORDER if day in ROUTINE_DAYS or day in used_days]

        boundaries = sorted({minute for slot, _, _ in classes for minute in (slot.start, slot.end)})
        labels, rows = [], []
        for start, end in zip(boundaries, boundaries[1:]):
            cells = {}
            for day in columns:
                cells[day] = next(
                    (label for slot, days, label in classes
                     if day in days and slot.start <= start < slot.end),
                    ""
                )
            labels.append(f"{format_minutes_12h(start)} - {format_minutes_12h(end)}")
            rows.append(cells)

        routine = pd.DataFrame(rows, index=pd.Index(labels, dtype=object), columns=columns)
        routine.index.name = 'Time'
        return routine

    @staticmethod
    def generate_grade_report(records: Iterable[EnrollmentRecord],
                              current_semester_id: Optional[int] = None,
                              semester_names: Optional[Dict[int, str]] = None) -> Dict[str, Any]:
        """
        Generate a semester-by-semester grade report.

        The current semester is left out because its grades are not final;
        enrollments without a semester are left out too. Missing grades count
        as 0.0 grade points.

        Args:
            records: Student's enrollment records
            current_semester_id: Semester to exclude
            semester_names: Display names keyed by semester ID

        Returns:
            Dictionary with per-semester GPA, cumulative CGPA and overall CGPA
        """
        semester_names = semester_names or {}
        lines = []

        for r in records:
            semester_id = r.offering.semester_id
            if semester_id is None or semester_id == current_semester_id:
                continue
            grade_point = r.enrollment.grade if r.enrollment.grade is not None else 0.0
            lines.append({
                'Semester ID': semester_id,
                'Course Code': r.course.code,
                'Course': r.course.name,
                'Credits': float(r.course.credits),
                'Grade Point': float(grade_point)
            })

        if not lines:
            return {'semesters': [], 'cgpa': None, 'total_credits': 0.0}

        df = pd.DataFrame(lines)
        df['Grade Points'] = df['Grade Point'] * df['Credits']

        totals = df.groupby('Semester ID', sort=True)[['Credits', 'Grade Points']].sum()
        cumulative_credits = np.cumsum(totals['Credits'].to_numpy())
        cumulative_points = np.cumsum(totals['Grade Points'].to_numpy())

        semesters = []
        for i, (semester_id, total) in enumerate(totals.iterrows()):
            semester_id = int(semester_id)
            credits = float(total['Credits'])
            gpa = float(total['Grade Points']) / credits if credits > 0 else None
            cgpa = (float(cumulative_points[i]) / float(cumulative_credits[i])
                    if cumulative_credits[i] > 0 else None)

            course_lines = df[df['Semester ID'] == semester_id]
            semesters.append({
                'semester_id': semester_id,
                'semester_name': semester_names.get(semester_id, f"Semester {semester_id}"),
                'courses': [{
                    'code': line['Course Code'],
                    'name': line['Course'],
                    'credits': float(line['Credits']),
                    'grade_point': float(line['Grade Point']),
                    'grade_points': float(line['Grade Points'])
                } for _, line in course_lines.iterrows()],
                'semester_credits': credits,
                'semester_gpa': gpa,
                'cumulative_cgpa': cgpa,
                'dean_list': gpa is not None and gpa >= config.DEAN_LIST_GPA
            })

        total_credits = float(cumulative_credits[-1])
        return {
            'semesters': semesters,
            'cgpa': float(cumulative_points[-1]) / total_credits if total_credits > 0 else None,
            'total_credits': total_credits
        }

    @staticmethod
    def generate_seat_report(offerings: Iterable[CourseOffering],
                             courses: Optional[Dict[str, Course]] = None) -> pd.DataFrame:
        """
        Generate a report on offering seat utilization.

        Returns:
            DataFrame with capacity, filled, seats left, utilization and status per offering
        """
        courses = courses or {}
        columns = ['Offering ID', 'Course Code', 'Section', 'Capacity', 'Filled',
                   'Seats Left', 'Utilization', 'Status']
        rows = []

        for o in offerings:
            utilization = o.filled / o.capacity
            course = courses.get(o.course_id)
            rows.append({
                'Offering ID': o.id,
                'Course Code': course.code if course else o.course_id,
                'Section': o.section,
                'Capacity': o.capacity,
                'Filled': o.filled,
                'Seats Left': o.seats_left,
                'Utilization': utilization,
                'Status': 'Full' if o.is_full else
                        'Low' if utilization < 0.3 else 'Good'
            })

        return pd.DataFrame(rows, columns=columns)
