"""
Row-access emulation: run statements as a subject and role.
"""

from .identity import ADMIN_ROLE, Identity, current_identity, with_identity

__all__ = ["ADMIN_ROLE", "Identity", "current_identity", "with_identity"]
