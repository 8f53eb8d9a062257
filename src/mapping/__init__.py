"""Schema mapping.

This module matches source schemas against target schemas.
It also renders transformation scripts from mapping results.
"""
