"""
Setup script for interactive_lbm_fluid package.
"""

from setuptools import setup, find_packages

setup(
    name="interactive_lbm_fluid",
    version="0.1.0",
    description="Interactive GPU-accelerated Lattice Boltzmann fluid simulation",
    author="Andrey",
    packages=find_packages(exclude=("tests", "benchmarks")),
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.20",
        "numba>=0.56",
        "matplotlib>=3.5",
    ],
    extras_require={
        "dev": ["pytest>=7.0", "black", "flake8"],
    },
)
