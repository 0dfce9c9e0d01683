"""
Endpoint subpackage for API v1.

Each module defines an APIRouter for one area; they are aggregated in
``router.py`` at the package level.
"""
