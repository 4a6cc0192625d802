"""
Enrollment registrar: admission rules, schedule catalog and student reports
for a university course registration portal.
"""
__version__ = "0.1.0"
