"""
HTTP application package: routes, middleware, services and request utilities.
"""
