"""
vmasm Command-Line Interface
============================

This package provides the `vmasm` command-line tool, a Click-based
application that assembles a source file into a program image.
"""

__all__ = ["vmasm"]
