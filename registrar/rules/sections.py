"""
Section label allocation.

Labels look like "CSE302-A": the course code followed by a letter. Letters
are handed out in order, reusing the first one no existing offering of the
course holds.
"""
import string
from typing import Iterable

from ..exceptions import MalformedInputError

SECTION_LETTERS = string.ascii_uppercase


def next_section_label(course_code: str, existing_sections: Iterable[str]) -> str:
    """
    Return the label for a new offering of ``course_code``.

    Args:
        course_code: Catalog code of the course, e.g. "CSE302"
        existing_sections: Section labels already used by the course's offerings

    Raises:
        MalformedInputError: If all 26 letters are taken
    """
    prefix = f"{course_code}-"
    used = {label[len(prefix):] for label in existing_sections if label.startswith(prefix)}

    for letter in SECTION_LETTERS:
        if letter not in used:
            return f"{prefix}{letter}"

    raise MalformedInputError(f"Course {course_code} has no free section letters left")
