"""Setup script for vitals CLI tool."""

from setuptools import find_packages, setup

setup(
    name="vitals-import",
    version="0.1.0",
    description="Vitals CLI - Health data import tool",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["vitals"],
    install_requires=[
        "typer[all]>=0.9.0",
        "rich>=13.0.0",
        "python-dotenv>=1.0.0",
        "pydantic>=2.5.0",
        "python-dateutil>=2.8.0",
        "numpy>=1.24.0",
        "pandas>=2.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-cov>=4.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "vitals=vitals:app",
        ],
    },
    python_requires=">=3.11",
)
