#!/usr/bin/env python3
"""
CypherDB Setup Script
=====================
Allows installation of the cypherdb package.

Usage:
    pip install -e .           # Development install
    pip install -e ".[test]"   # Development install with test tooling
"""

from setuptools import setup, find_packages

setup(
    name="cypherdb",
    version="1.0.0",
    packages=find_packages(include=["cypherdb", "cypherdb.*"]),
    python_requires=">=3.10",
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    entry_points={
        "console_scripts": [
            "cypherdb=cypherdb.server:main",
            "cypherdb-cli=cypherdb.client:main",
        ],
    },
)
