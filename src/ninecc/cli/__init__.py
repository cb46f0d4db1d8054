"""
ninecc Command-Line Interface
=============================

This package provides the ``ninecc`` command, a Click-based front end
to the compiler and the simulator.
"""

__all__ = ["ninecc"]
