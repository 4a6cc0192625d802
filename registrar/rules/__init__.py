# Admission rules and schedule catalog
from . import admission
from . import catalog
from . import sections
from . import timeslots

__all__ = ['admission', 'catalog', 'sections', 'timeslots']
