"""
Xubuntu Toolkit
---------------

Root-run maintenance procedures for Xubuntu Minimal / Ubuntu 24.04 hosts:
desktop migration to KDE, editor and database tool installation, swap
management and repository cleanup. Every mutating procedure snapshots the
configuration it touches first and restores it if a step fails.
"""

__version__ = "1.0.0"
