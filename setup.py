"""
Setup script for course-graph-engine.

The course graph engine drives prerequisite-gated spaced repetition for a
course-teaching bot. It serves three roles:

1. Course Versioning - validated, atomic swaps of the (graph, deck) pair
2. Card Delivery - FSRS scheduling of cards from unlocked concepts only
3. Progress View - per-learner node categories and Graphviz export

The 'course-engine' command is the local entry point.
"""

from setuptools import find_packages, setup

setup(
    name="course-graph-engine",
    version="1.0.0",
    description="Prerequisite-gated spaced repetition over a versioned course graph",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(include=["course_engine", "course_engine.*"]),
    py_modules=["config"],
    python_requires=">=3.11",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy>=2.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "course-engine=course_engine.cli.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Intended Audience :: Education",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="learning spaced-repetition fsrs course-graph education",
)
