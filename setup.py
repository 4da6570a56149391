#!/usr/bin/env python
"""Setup configuration for Clinical FHIR."""

from setuptools import find_packages, setup

setup(
    name="clinical-fhir",
    version="1.0.0",
    description="HL7 FHIR R4 resource models, validation and FHIR JSON codec",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2.5.0",
        "fhirclient>=4.1.0",
        "pydantic-settings>=2.0.0",
        "structlog>=23.2.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
        ],
    },
)
