"""
Version 1 of the API.

Breaking changes should be introduced in a new version subpackage to
preserve backwards compatibility.
"""
