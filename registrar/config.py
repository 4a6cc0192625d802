"""
Configuration constants for the enrollment registrar.

Values that operators are expected to tune are read from the environment
(a local ``.env`` file is honoured through python-dotenv). Everything else
is a fixed policy constant shared by the rules, the store and the surfaces.
"""
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str) -> Optional[int]:
    value = os.environ.get(name, "").strip()
    return int(value) if value else None


# =============================================================================
# FILE PATHS
# =============================================================================

BASE_DIR = Path(__file__).parent.parent
DATA_DIR = Path(os.environ.get("REGISTRAR_DATA_DIR", BASE_DIR / "data"))

# SQLAlchemy URL; when unset the CSV-backed in-memory store is used
DATABASE_URL = os.environ.get("REGISTRAR_DATABASE_URL") or None


# =============================================================================
# ADMISSION POLICY
# =============================================================================

# Maximum total credit weight a student may carry in one semester
MAX_CREDITS = float(os.environ.get("REGISTRAR_MAX_CREDITS", 15))

# "exact" compares day/time slot strings literally, "overlap" compares
# weekday sets and minute intervals
CLASH_POLICY = os.environ.get("REGISTRAR_CLASH_POLICY", "exact")

# Semester new enrollments are attached to; None disables semester scoping
CURRENT_SEMESTER_ID = _env_int("REGISTRAR_CURRENT_SEMESTER")


# =============================================================================
# SCHEDULE CATALOG
# =============================================================================

DAY_START_MINUTES = 8 * 60 + 30
DAY_END_MINUTES = 18 * 60
LECTURE_MINUTES = 90
SLOT_GAP_MINUTES = 10
LAB_MINUTES = 120
LONG_LAB_MINUTES = 180  # 1.5 credit labs
LONG_LAB_CREDITS = 1.5

BUILDINGS = ["A", "B", "C", "D"]
FLOORS = [1, 2, 3, 4]
ROOMS_PER_FLOOR = 5

DAY_SLOT_OPTIONS = ["ST", "TR", "SR", "MW"]
CLASS_TYPES = ["Class", "Lab"]
DEFAULT_SEATS = 30


# =============================================================================
# GRADING
# =============================================================================

MIN_GRADE_POINT = 0.0
MAX_GRADE_POINT = 4.0
DEAN_LIST_GPA = 3.8
