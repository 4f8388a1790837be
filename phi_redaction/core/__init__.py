# phi_redaction/core/__init__.py

"""Core domain models and utilities used across the PHI detection system.

This package provides domain types, exceptions, constants and the pattern
loader shared by the rest of the application.
"""
