# provisioning_app/models/contact/__init__.py
"""
Contact models package.
Provides the Contact request model, its auth table entry and Contact Mappings.
"""

from .auth import AUTH_ENTRY_DESCRIPTION, AuthEntry
from .base import Contact
from .enums import DEPROVISIONED_STATUSES, ENABLED_STATUSES, STATUS_TRANSITIONS, ContactStatus
from .mapping import ContactMapping

__all__ = [
    # Base model
    "Contact",
    # Enums
    "ContactStatus",
    "DEPROVISIONED_STATUSES",
    "ENABLED_STATUSES",
    "STATUS_TRANSITIONS",
    # Related models
    "AuthEntry",
    "AUTH_ENTRY_DESCRIPTION",
    "ContactMapping",
]
