"""
Interactive D2Q9 Lattice Boltzmann fluid.
"""

__version__ = "0.1.0"
