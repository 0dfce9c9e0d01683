"""
Pydantic schema definitions for API payloads.

Schemas are separated from the stored records so that the API
representation (snake_case views) is decoupled from persistence
(camelCase documents).
"""
