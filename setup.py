"""Setup configuration for the MES test-log pipeline."""
from setuptools import setup, find_packages

setup(
    name="mes-test-pipeline",
    version="0.1.0",
    description="Import, normalization and aggregation pipeline for MES test logs",
    author="MES Dashboard Engineering",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.10",
    install_requires=[
        "pydantic>=2.5.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-cov>=4.1.0",
            "pytest-mock>=3.12.0",
            "black>=23.11.0",
            "ruff>=0.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "mes-pipeline=mes_pipeline.cli.main:main",
        ],
    },
)
