from .policy_repository import PolicyRepository

__all__ = ['PolicyRepository']
