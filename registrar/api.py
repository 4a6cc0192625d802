"""
REST API for the enrollment registrar.
Provides HTTP endpoints for the schedule catalog, offerings, enrollments and student reports.

The caller's identity is set by the upstream identity provider in the
X-User-Id and X-User-Role headers; X-Semester-Id optionally scopes a request
to a semester other than the current one.
"""
import logging
import time
from typing import Optional

from flask import Blueprint, Flask, abort, current_app, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from . import config
from .exceptions import (
    InfrastructureError, MalformedInputError, NotFoundError, PermissionDeniedError,
)
from .models.entities import RequestContext, Role
from .service import EnrollmentService, create_service

logger = logging.getLogger(__name__)

api = Blueprint('api', __name__, url_prefix='/api/v1')


def _service() -> EnrollmentService:
    return current_app.config['REGISTRAR_SERVICE']


def _context() -> RequestContext:
    """Build the request context from the identity headers."""
    user_id = request.headers.get('X-User-Id', '').strip()
    if not user_id:
        abort(401, description="Missing X-User-Id header")

    role_name = request.headers.get('X-User-Role', Role.STUDENT.value).strip().lower()
    try:
        role = Role(role_name)
    except ValueError:
        abort(400, description=f"Invalid role: {role_name}")

    semester_id = None
    semester_header = request.headers.get('X-Semester-Id', '').strip()
    if semester_header:
        try:
            semester_id = int(semester_header)
        except ValueError:
            abort(400, description=f"Invalid semester: {semester_header}")

    return RequestContext(user_id=user_id, role=role, semester_id=semester_id)


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        abort(400, description="Request body must be a JSON object")
    return data


def _int_field(data: dict, key: str, default: Optional[int] = None) -> Optional[int]:
    """Integer field of a JSON body; 400 when present but not a whole number."""
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        abort(400, description=f"Invalid {key}: {value}")
    if isinstance(value, float) and value.is_integer():
        return int(value)
    try:
        return int(str(value).strip())
    except ValueError:
        abort(400, description=f"Invalid {key}: {value}")


def _offering_dict(candidate) -> dict:
    offering, course = candidate.offering, candidate.course
    return {
        'id': offering.id,
        'course_id': course.id,
        'course_code': course.code,
        'course_name': course.name,
        'credits': course.credits,
        'section': offering.section,
        'day_slot': offering.day_slot,
        'time_slot': offering.time_slot,
        'room': offering.room,
        'capacity': offering.capacity,
        'filled': offering.filled,
        'seats_left': offering.seats_left,
        'instructor_id': offering.instructor_id,
        'class_type': offering.class_type,
        'semester_id': offering.semester_id
    }


@api.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return jsonify({
        'status': 'healthy',
        'timestamp': time.time()
    })


@api.route('/catalog', methods=['GET'])
def get_catalog():
    """Time slots, rooms and day slots available when creating an offering."""
    class_type = request.args.get('class_type', 'Class')
    credits = request.args.get('credits', type=float)
    return jsonify(_service().catalog(class_type, credits))


@api.route('/offerings', methods=['GET'])
def list_offerings():
    """List offerings of the semester, optionally filtered by ?search=."""
    ctx = _context()
    candidates = _service().available_offerings(
        ctx, search=request.args.get('search'), student_id=request.args.get('student_id')
    )
    return jsonify({
        'offerings': [_offering_dict(c) for c in candidates]
    })


@api.route('/offerings', methods=['POST'])
def create_offering():
    """Create an offering (staff only)."""
    ctx = _context()
    data = _json_body()

    missing = [key for key in ('course_id', 'day_slot', 'time_slot', 'room') if not data.get(key)]
    if missing:
        abort(400, description=f"Missing fields: {', '.join(missing)}")

    service = _service()
    offering = service.create_offering(
        ctx,
        course_id=str(data['course_id']),
        day_slot=data['day_slot'],
        time_slot=data['time_slot'],
        room=data['room'],
        instructor_id=data.get('instructor_id'),
        capacity=_int_field(data, 'capacity', config.DEFAULT_SEATS),
        class_type=data.get('class_type', 'Class'),
        semester_id=_int_field(data, 'semester_id'),
    )
    return jsonify(_offering_dict(service.candidate(offering.id))), 201


@api.route('/offerings/<offering_id>/evaluation', methods=['GET'])
def evaluate_offering(offering_id):
    """Dry-run the admission rules without taking a seat."""
    ctx = _context()
    decision = _service().evaluate(ctx, offering_id, student_id=request.args.get('student_id'))
    return jsonify(decision.to_dict())


@api.route('/enrollments', methods=['POST'])
def enroll():
    """Enroll a student in an offering."""
    ctx = _context()
    data = _json_body()

    if not data.get('offering_id'):
        abort(400, description="Missing fields: offering_id")

    result = _service().enroll(ctx, str(data['offering_id']), student_id=data.get('student_id'))
    return jsonify(result.to_dict()), 201 if result.admitted else 409


@api.route('/enrollments/<enrollment_id>', methods=['DELETE'])
def withdraw(enrollment_id):
    """Withdraw an enrollment (and its paired lab)."""
    ctx = _context()
    result = _service().withdraw(ctx, enrollment_id)
    return jsonify(result.to_dict()), 200 if result.withdrawn else 409


@api.route('/enrollments/<enrollment_id>/grade', methods=['PUT'])
def record_grade(enrollment_id):
    """Set or clear an enrollment's grade point."""
    ctx = _context()
    data = _json_body()

    if 'grade' not in data:
        abort(400, description="Missing fields: grade")

    grade: Optional[float] = data['grade']
    if grade is not None:
        try:
            grade = float(grade)
        except (TypeError, ValueError):
            abort(400, description=f"Invalid grade: {grade}")

    enrollment = _service().record_grade(ctx, enrollment_id, grade)
    return jsonify({
        'id': enrollment.id,
        'student_id': enrollment.student_id,
        'offering_id': enrollment.offering_id,
        'grade': enrollment.grade
    })


@api.route('/students/<student_id>/schedule', methods=['GET'])
def student_schedule(student_id):
    """A student's enrollments for the semester plus the weekly routine grid."""
    ctx = _context()
    service = _service()

    schedule = service.student_schedule(ctx, student_id)
    routine = service.converter.convert_to_routine_df(schedule.records)
    listing = service.converter.convert_to_schedule_df(schedule.records)

    return jsonify({
        'student_id': schedule.student_id,
        'total_credits': schedule.total_credits,
        'enrollments': listing.astype(object).where(listing.notna(), None).to_dict(orient='records'),
        'routine': {
            'days': list(routine.columns),
            'rows': [{'time': label, **row} for label, row in zip(routine.index, routine.to_dict(orient='records'))]
        }
    })


@api.route('/students/<student_id>/grade-report', methods=['GET'])
def grade_report(student_id):
    """Grade report over the student's past semesters."""
    ctx = _context()
    return jsonify(_service().grade_report(ctx, student_id))


@api.route('/reports/seats', methods=['GET'])
def seat_report():
    """Seat utilization per offering (staff only)."""
    ctx = _context()
    report = _service().seat_report(ctx)
    return jsonify({
        'offerings': report.to_dict(orient='records')
    })


def _error(status: int, message: str):
    return jsonify({'error': message, 'status': status}), status


def register_error_handlers(app: Flask):
    """Map registrar and HTTP errors to JSON responses."""

    @app.errorhandler(PermissionDeniedError)
    def handle_permission(e):
        return _error(403, str(e))

    @app.errorhandler(MalformedInputError)
    def handle_malformed(e):
        return _error(400, str(e))

    @app.errorhandler(NotFoundError)
    def handle_not_found(e):
        return _error(404, str(e))

    @app.errorhandler(InfrastructureError)
    def handle_infrastructure(e):
        logger.error(f"Store failure: {str(e)}")
        return _error(503, "The registrar store is unavailable, try again later")

    @app.errorhandler(HTTPException)
    def handle_http(e):
        return _error(e.code, e.description)


def create_app(service: Optional[EnrollmentService] = None) -> Flask:
    """
    Create the Flask application.

    Args:
        service: Service to serve; built from the configured store when omitted
    """
    app = Flask(__name__)
    CORS(app)  # Enable CORS for all routes

    app.config['REGISTRAR_SERVICE'] = service or create_service()
    app.register_blueprint(api)
    register_error_handlers(app)

    return app
