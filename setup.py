"""
Setup script for Plugin E2E Monitor

This file is kept for backward compatibility. The project uses pyproject.toml
as the primary configuration file; setuptools reads it from there.
"""

from setuptools import setup

# setuptools will automatically read pyproject.toml
setup()
