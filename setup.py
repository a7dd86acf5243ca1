"""
Setup script for thinkpath-engine.

thinkpath is the adaptive learning path and progress engine for the
critical-thinking practice platform. It serves three roles:

1. Path generation - dependency-ordered theory and practice steps per learner
2. Progress tracking - step unlocks, level unlocks and concept mastery
3. Recommendations - today's task from path, mastery decay and progress signals

The 'thinkpath' command is the operator entry point.
"""

from setuptools import find_packages, setup

setup(
    name="thinkpath-engine",
    version="1.0.0",
    description="Adaptive learning path and progress engine for critical thinking practice",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="thinkpath",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["config"],
    python_requires=">=3.11",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy>=2.0.0",
        "psycopg2-binary>=2.9.0",
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
            "thinkpath=thinkpath.cli.main:main",
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
    keywords="learning adaptive critical-thinking progress education",
)
