"""Staging storage and export sinks.

This package persists raw records in monotonic batches, mirrors them to
Lance for inspection queries, and publishes exported artifacts.
"""
