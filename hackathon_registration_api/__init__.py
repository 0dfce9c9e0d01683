"""
Top‑level package for the Hackathon Registration API.

This file makes ``hackathon_registration_api`` a Python package so that
modules within ``app`` can be imported using fully qualified names
like ``hackathon_registration_api.app.main``.

The package provides no public exports; all functionality lives in
submodules under ``app``.
"""

__all__ = []
