#!/usr/bin/env python
"""
Setup script for tokenscope - Session Token Randomness Analysis
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read the README file
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

# Core dependencies
install_requires = [
    "pydantic>=2.5.0",
    "pydantic-settings>=2.1.0",
    "numpy>=1.26.0",
    "click>=8.1.0",
]

# Test dependencies; scipy provides reference values for the special functions
test_requires = [
    "pytest>=7.4.0",
    "hypothesis>=6.88.0",
    "scipy>=1.11.0",
]

# Development dependencies
dev_requires = test_requires + [
    "black>=23.11.0",
    "flake8>=6.1.0",
    "mypy>=1.7.0",
    "coverage>=7.3.0",
    "pytest-cov>=4.1.0",
]

setup(
    name="tokenscope",
    version="0.1.0",
    description="Entropy estimation and randomness testing for captured session tokens",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="tokenscope Team",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=install_requires,
    extras_require={
        "test": test_requires,
        "dev": dev_requires,
    },
    entry_points={
        "console_scripts": [
            "tokenscope=tokenscope.cli.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Intended Audience :: Information Technology",
        "Topic :: Security",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    keywords="security session-tokens entropy randomness sp800-22",
)
