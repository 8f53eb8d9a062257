"""Schema interchange.

This module serializes schemas and mapping results to JSON and YAML.
It also provides the JSON Schema codec used by the export stage.
"""
