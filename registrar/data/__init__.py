# Data loading, conversion and persistent stores
from .converter import DataConverter
from .loader import RegistrarDataLoader
from .store import EnrollmentStore, InMemoryStore

__all__ = ['DataConverter', 'RegistrarDataLoader', 'EnrollmentStore', 'InMemoryStore']
