"""
Setup script for the enrollment registrar.
"""
from setuptools import setup, find_packages

setup(
    name="enrollment-registrar",
    version="0.1.0",
    description="Course enrollment admission rules and schedule tools for a university registrar",
    author="Optimo MSIS",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["main"],
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.22.0",
        "pandas>=1.4.0",
        "flask>=2.0.0",
        "flask-cors>=3.0.0",
        "werkzeug>=2.0.0",
        "python-dotenv>=0.19.0",
        "sqlalchemy>=2.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=2.0.0",
            "black>=22.0.0",
            "mypy>=0.900"
        ]
    },
    entry_points={
        "console_scripts": [
            "registrar=main:main",
        ],
    },
)
