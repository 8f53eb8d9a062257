"""Pipeline orchestration.

This module sequences ingest, inference, refinement, mapping, and export.
It persists checkpoints so interrupted runs can resume.
"""
