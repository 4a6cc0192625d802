#!/usr/bin/env python3
"""
Command-line interface for the enrollment registrar.
Works against the CSV files in --input-dir; commands that change data
write the updated files to --output-dir.
"""
import argparse
import json
import logging
import sys
from pathlib import Path

from . import config
from .exceptions import RegistrarError
from .models.entities import RequestContext, Role
from .service import EnrollmentService

MUTATING_COMMANDS = {'enroll', 'withdraw', 'grade', 'create-offering'}


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description='Enrollment Registrar CLI',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument(
        '--input-dir',
        type=str,
        default=str(config.DATA_DIR),
        help='Directory containing input CSV files'
    )

    parser.add_argument(
        '--output-dir',
        type=str,
        default=None,
        help='Directory to save updated CSV files (defaults to the input directory)'
    )

    parser.add_argument(
        '--user',
        type=str,
        default='registrar',
        help='User ID the command runs as'
    )

    parser.add_argument(
        '--role',
        type=str,
        choices=[role.value for role in Role],
        default=Role.STAFF.value,
        help='Role the command runs as'
    )

    parser.add_argument(
        '--semester',
        type=int,
        default=config.CURRENT_SEMESTER_ID,
        help='Semester ID the command applies to'
    )

    parser.add_argument(
        '--log-level',
        type=str,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        default='WARNING',
        help='Logging level'
    )

    parser.add_argument(
        '--json-output',
        action='store_true',
        help='Output results as JSON'
    )

    commands = parser.add_subparsers(dest='command', required=True)

    catalog = commands.add_parser('catalog', help='Show time slots, rooms and day slots')
    catalog.add_argument('--class-type', choices=config.CLASS_TYPES, default='Class')
    catalog.add_argument('--credits', type=float, default=None)

    offerings = commands.add_parser('offerings', help='List offerings of the semester')
    offerings.add_argument('--search', type=str, default=None)
    offerings.add_argument('--student', type=str, default=None)

    create = commands.add_parser('create-offering', help='Create an offering for a course')
    create.add_argument('course_id')
    create.add_argument('--day-slot', required=True)
    create.add_argument('--time-slot', required=True)
    create.add_argument('--room', required=True)
    create.add_argument('--instructor', default=None)
    create.add_argument('--capacity', type=int, default=config.DEFAULT_SEATS)
    create.add_argument('--class-type', choices=config.CLASS_TYPES, default='Class')

    enroll = commands.add_parser('enroll', help='Enroll a student in an offering')
    enroll.add_argument('student_id')
    enroll.add_argument('offering_id')
    enroll.add_argument('--dry-run', action='store_true', help='Evaluate without taking a seat')

    withdraw = commands.add_parser('withdraw', help='Withdraw an enrollment')
    withdraw.add_argument('enrollment_id')

    grade = commands.add_parser('grade', help="Set an enrollment's grade point")
    grade.add_argument('enrollment_id')
    grade.add_argument('grade', type=float)

    schedule = commands.add_parser('schedule', help="Show a student's weekly routine")
    schedule.add_argument('student_id')

    report = commands.add_parser('report', help="Show a student's grade report")
    report.add_argument('student_id')

    commands.add_parser('seats', help='Show seat utilization per offering')

    return parser.parse_args(argv)


def setup_logging(log_level):
    """Configure logging."""
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f'Invalid log level: {log_level}')

    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def run_command(service: EnrollmentService, ctx: RequestContext, args) -> dict:
    """Run one subcommand and return its result as a JSON-ready dictionary."""
    if args.command == 'catalog':
        return service.catalog(args.class_type, args.credits)

    if args.command == 'offerings':
        candidates = service.available_offerings(ctx, search=args.search, student_id=args.student)
        return {'offerings': [{
            'id': c.offering.id,
            'course': c.label,
            'section': c.offering.section,
            'day_slot': c.offering.day_slot,
            'time_slot': c.offering.time_slot,
            'room': c.offering.room,
            'seats_left': c.offering.seats_left
        } for c in candidates]}

    if args.command == 'create-offering':
        offering = service.create_offering(
            ctx, args.course_id, args.day_slot, args.time_slot, args.room,
            instructor_id=args.instructor, capacity=args.capacity, class_type=args.class_type,
        )
        return {'id': offering.id, 'section': offering.section}

    if args.command == 'enroll':
        if args.dry_run:
            return service.evaluate(ctx, args.offering_id, student_id=args.student_id).to_dict()
        return service.enroll(ctx, args.offering_id, student_id=args.student_id).to_dict()

    if args.command == 'withdraw':
        return service.withdraw(ctx, args.enrollment_id).to_dict()

    if args.command == 'grade':
        enrollment = service.record_grade(ctx, args.enrollment_id, args.grade)
        return {'id': enrollment.id, 'grade': enrollment.grade}

    if args.command == 'schedule':
        routine = service.routine(ctx, args.student_id)
        return {'routine': {'days': list(routine.columns),
                            'rows': {label: row for label, row in zip(routine.index, routine.to_dict(orient='records'))}},
                'text': routine.to_string() if not routine.empty else "No scheduled classes"}

    if args.command == 'report':
        return service.grade_report(ctx, args.student_id)

    if args.command == 'seats':
        report = service.seat_report(ctx)
        return {'offerings': report.to_dict(orient='records'),
                'text': report.to_string(index=False) if not report.empty else "No offerings"}

    raise ValueError(f"Unknown command: {args.command}")


def _points(value) -> str:
    return f"{value:.2f}" if value is not None else "-"


def print_result(command: str, result: dict):
    """Output results in human-readable format."""
    if 'text' in result:
        print(result['text'])
        return

    if command in ('enroll', 'withdraw'):
        accepted = result.get('admitted', result.get('withdrawn'))
        if accepted:
            print(f"OK: {result['detail']}")
        else:
            print(f"Rejected ({result['reason']}): {result['detail']}")
        return

    if command == 'report':
        for semester in result['semesters']:
            print(f"\n{semester['semester_name']}")
            for course in semester['courses']:
                print(f"  {course['code']:<10} {course['name']:<40} {course['credits']:>4g} {course['grade_point']:>5.2f}")
            print(f"  GPA: {_points(semester['semester_gpa'])}  CGPA: {_points(semester['cumulative_cgpa'])}"
                  + ("  (Dean's list)" if semester['dean_list'] else ""))
        if result['cgpa'] is not None:
            print(f"\nCGPA: {result['cgpa']:.2f} over {result['total_credits']:g} credits")
        else:
            print("No completed semesters")
        return

    if command == 'offerings':
        for offering in result['offerings']:
            print(f"  {offering['section']:<12} {offering['course']:<45} "
                  f"{offering['day_slot'] or '-':<3} {offering['time_slot'] or '-':<15} "
                  f"{offering['room'] or '-':<6} {offering['seats_left']} seats left")
        return

    for key, value in result.items():
        print(f"  {key}: {value}")


def main(argv=None):
    """Main entry point for the CLI."""
    # Parse command-line arguments
    args = parse_args(argv)

    # Setup logging
    setup_logging(args.log_level)

    input_dir = Path(args.input_dir)
    if not input_dir.exists():
        print(f"Error: Input directory does not exist: {input_dir}")
        sys.exit(1)

    try:
        service = EnrollmentService.from_directory(str(input_dir), current_semester_id=args.semester)
        ctx = RequestContext(user_id=args.user, role=Role(args.role), semester_id=args.semester)

        result = run_command(service, ctx, args)

        if args.command in MUTATING_COMMANDS and not getattr(args, 'dry_run', False):
            output_files = service.save(args.output_dir or str(input_dir))
            result['output_files'] = output_files

        if args.json_output:
            result.pop('text', None)
            print(json.dumps(result, indent=2, default=str))
        else:
            print_result(args.command, result)

    except RegistrarError as e:
        print(f"Error: {str(e)}")
        sys.exit(1)


if __name__ == '__main__':
    main()
