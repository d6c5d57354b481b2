# provisioning_app/models/__init__.py
"""
Database models package
"""

from .base import BaseModel, db
from .contact import (
    AUTH_ENTRY_DESCRIPTION,
    DEPROVISIONED_STATUSES,
    ENABLED_STATUSES,
    STATUS_TRANSITIONS,
    AuthEntry,
    Contact,
    ContactMapping,
    ContactStatus,
)
from .moodle import CONTEXT_LEVEL_USER, MoodleContext, MoodleRoleAssignment, MoodleUser
from .option import PENDING_REQUESTS_TRANSIENT, STATIC_CONTEXTS_OPTION, PluginOption

__all__ = [
    "db",
    "BaseModel",
    "PluginOption",
    "STATIC_CONTEXTS_OPTION",
    "PENDING_REQUESTS_TRANSIENT",
    # Contact models
    "Contact",
    "ContactMapping",
    "AuthEntry",
    "AUTH_ENTRY_DESCRIPTION",
    # Contact enums
    "ContactStatus",
    "DEPROVISIONED_STATUSES",
    "ENABLED_STATUSES",
    "STATUS_TRANSITIONS",
    # Moodle models
    "MoodleUser",
    "MoodleContext",
    "MoodleRoleAssignment",
    "CONTEXT_LEVEL_USER",
]
