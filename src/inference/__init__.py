"""Schema inference.

This module profiles staged JSON records and builds canonical schemas.
It exposes sharded, order-independent inference for the pipeline.
"""
