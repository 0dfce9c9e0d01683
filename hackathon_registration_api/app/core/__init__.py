"""
Core infrastructure: configuration, logging, errors, storage
selection, admin security and the shared application state.
"""
