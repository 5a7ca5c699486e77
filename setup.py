"""
Setup script for the Coach Feedback Manager.
"""

from setuptools import setup, find_packages

with open("requirements.txt") as f:
    requirements = f.read().splitlines()

setup(
    name="coach-feedback-manager",
    version="1.0.0",
    description="Rail-coach passenger feedback import, validation, reporting and submission",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["main", "web_ui"],
    install_requires=requirements,
    extras_require={
        "test": [
            "pytest>=7.0",
            "PyMuPDF>=1.23.0",
        ],
    },
    python_requires=">=3.8",
    entry_points={
        "console_scripts": [
            "coach-feedback=main:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
