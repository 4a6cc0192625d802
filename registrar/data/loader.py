import pandas as pd
from pathlib import Path
import datetime
import logging
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

COURSES_FILE = 'Courses.csv'
OFFERINGS_FILE = 'Course_Offerings.csv'
ENROLLMENTS_FILE = 'Enrollments.csv'
SEMESTERS_FILE = 'Semesters.csv'

ENROLLMENT_COLUMNS = ['Enrollment ID', 'Student ID', 'Offering ID', 'Grade']
SEMESTER_COLUMNS = ['Semester ID', 'Name']

# identifiers stay strings even when they look numeric
ID_DTYPES = {
    'Course ID': str,
    'Course Code': str,
    'Offering ID': str,
    'Enrollment ID': str,
    'Student ID': str,
    'Instructor ID': str,
}


class RegistrarDataLoader:
    """
    Handles loading and validating registrar data from CSV files.
    Provides validation and relationship checking between courses, offerings and enrollments.
    """

    def __init__(self, input_dir: Optional[str] = None, debug_dir: Optional[str] = None):
        """
        Initialize the data loader.

        Args:
            input_dir: Directory containing input CSV files
            debug_dir: Optional directory for a timestamped loader log file
        """
        self.input_dir = Path(input_dir) if input_dir else Path.cwd()

        if debug_dir:
            self.debug_dir = Path(debug_dir)
            self.debug_dir.mkdir(parents=True, exist_ok=True)

            timestamp = datetime.datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
            self.log_file = self.debug_dir / f"data_loader_{timestamp}.log"

            file_handler = logging.FileHandler(self.log_file)
            file_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
            logger.addHandler(file_handler)

        self.data = {}

        if not self.input_dir.exists():
            logger.error(f"Input directory not found at {self.input_dir}")
            raise FileNotFoundError(f"Input directory not found at {self.input_dir}")

        logger.info("Data loader initialized successfully")

    def load_catalog_data(self):
        """
        Load the catalog files every registrar needs:
        - Courses
        - Course offerings
        """
        try:
            logger.info("Loading catalog data files...")

            self.data['courses'] = pd.read_csv(self.input_dir / COURSES_FILE, dtype=ID_DTYPES)
            logger.info(f"Courses loaded: {len(self.data['courses'])} records")

            self.data['offerings'] = pd.read_csv(self.input_dir / OFFERINGS_FILE, dtype=ID_DTYPES)
            logger.info(f"Offerings loaded: {len(self.data['offerings'])} records")

        except FileNotFoundError as e:
            logger.error(f"Missing input file: {e.filename}")
            raise

    def load_enrollment_data(self):
        """
        Load data that may legitimately be absent on a fresh install:
        - Enrollments
        - Semesters
        """
        logger.info("Loading enrollment data...")

        self.data['enrollments'] = self._read_optional(ENROLLMENTS_FILE, ENROLLMENT_COLUMNS)
        logger.info(f"Enrollments: {len(self.data['enrollments'])} records")

        self.data['semesters'] = self._read_optional(SEMESTERS_FILE, SEMESTER_COLUMNS)
        logger.info(f"Semesters: {len(self.data['semesters'])} records")

    def _read_optional(self, file_name: str, columns: List[str]) -> pd.DataFrame:
        try:
            return pd.read_csv(self.input_dir / file_name, dtype=ID_DTYPES)
        except (pd.errors.EmptyDataError, FileNotFoundError):
            logger.warning(f"{file_name} not found or empty, using empty dataset")
            return pd.DataFrame(columns=columns)

    def validate_relationships(self) -> List[str]:
        """
        Validate relationships and data consistency across loaded datasets.
        Checks for:
        - Offerings referencing unknown courses
        - Enrollments referencing unknown offerings
        - Filled counts above capacity or out of step with the enrollment rows
        """
        logger.info("Validating data relationships...")
        validation_issues = []

        courses = self.data['courses']
        offerings = self.data['offerings']
        enrollments = self.data['enrollments']

        known_courses = set(courses['Course ID'].astype(str))
        unknown_courses = set(offerings['Course ID'].astype(str)) - known_courses
        if unknown_courses:
            issue = f"Unknown courses in offerings: {sorted(unknown_courses)}"
            validation_issues.append(issue)
            logger.warning(issue)

        known_offerings = set(offerings['Offering ID'].astype(str))
        enrolled_offerings = enrollments['Offering ID'].astype(str)
        unknown_offerings = set(enrolled_offerings) - known_offerings
        if unknown_offerings:
            issue = f"Enrollments reference unknown offerings: {sorted(unknown_offerings)}"
            validation_issues.append(issue)
            logger.warning(issue)

        if 'Filled' in offerings.columns:
            counts = enrolled_offerings.value_counts()
            for _, row in offerings.iterrows():
                offering_id = str(row['Offering ID'])
                filled = int(row['Filled']) if pd.notna(row['Filled']) else 0
                capacity = int(row['Capacity'])
                if filled > capacity:
                    issue = f"Offering {offering_id} has {filled} filled seats but capacity {capacity}"
                    validation_issues.append(issue)
                    logger.warning(issue)
                enrolled = int(counts.get(offering_id, 0))
                if filled != enrolled:
                    issue = f"Offering {offering_id} filled count {filled} does not match {enrolled} enrollments"
                    validation_issues.append(issue)
                    logger.warning(issue)

        if not validation_issues:
            logger.info("All relationships are valid")
        else:
            logger.warning(f"Found {len(validation_issues)} validation issues")

        return validation_issues

    def load_all(self) -> Dict[str, pd.DataFrame]:
        """
        Load and validate all registrar data.

        Returns:
            Dict: Dictionary containing all loaded dataframes
        """
        try:
            logger.info("Starting data load process...")
            self.load_catalog_data()
            self.load_enrollment_data()
            issues = self.validate_relationships()

            if issues:
                logger.warning(f"Data loaded with {len(issues)} validation issues")
            else:
                logger.info("Data loaded and validated successfully")

            return self.data

        except Exception as e:
            logger.error(f"Error during data loading: {str(e)}")
            raise
