"""
Shared runtime helpers (logging, thread pool).
"""
