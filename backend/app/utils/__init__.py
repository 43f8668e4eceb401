"""
Utility functions for the HTTP layer.
"""
from .route_decorators import handle_route_errors
from .request_validators import RequestField, extract_json_fields, extract_query_params

__all__ = ['handle_route_errors', 'RequestField', 'extract_json_fields', 'extract_query_params']
