"""
Collaborator services used by workflow node executors.
"""
from .bsdd_client import BsddClient
from .ids_validator import IdsValidator, IdsParseError

__all__ = ['BsddClient', 'IdsValidator', 'IdsParseError']
