"""Optional schema refinement through a language model.

This package defines the refiner contract, validates refined schemas,
and provides an HTTP client for Ollama-compatible servers.
"""
