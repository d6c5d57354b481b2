# provisioning_app/models/contact/enums.py
"""
Enums and status transitions for Contact models.
"""

from enum import Enum as PyEnum


class ContactStatus(PyEnum):
    """Lifecycle status of a parent account request"""

    PENDING = "pending"
    APPROVED = "approved"
    PROVISIONED = "provisioned"
    REJECTED = "rejected"
    DUPLICATE = "duplicate"
    BOGUS = "bogus"
    UNKNOWN = "unknown"
    DELETING = "deleting"  # temporary, while a row is being permanently deleted

    @classmethod
    def coerce(cls, value):
        """Return the member for a member or its string value; raises ValueError otherwise"""
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())

    @classmethod
    def values(cls):
        return [status.value for status in cls]

    def can_transition(self, target):
        """Whether the status table permits moving from this status to target"""
        return ContactStatus.coerce(target) in STATUS_TRANSITIONS[self]


# Statuses a Contact may hold once its auth table entry has been removed
DEPROVISIONED_STATUSES = (
    ContactStatus.PENDING,
    ContactStatus.REJECTED,
    ContactStatus.DUPLICATE,
    ContactStatus.BOGUS,
    ContactStatus.UNKNOWN,
    ContactStatus.DELETING,
)

# Statuses in which the parent is considered to hold (or be about to hold) a live account
ENABLED_STATUSES = (ContactStatus.APPROVED, ContactStatus.PROVISIONED)

STATUS_TRANSITIONS = {
    ContactStatus.PENDING: frozenset((ContactStatus.APPROVED,) + DEPROVISIONED_STATUSES),
    ContactStatus.APPROVED: frozenset(
        (ContactStatus.PROVISIONED, ContactStatus.DUPLICATE) + DEPROVISIONED_STATUSES
    ),
    ContactStatus.PROVISIONED: frozenset(DEPROVISIONED_STATUSES),
    ContactStatus.REJECTED: frozenset(DEPROVISIONED_STATUSES),
    ContactStatus.DUPLICATE: frozenset(DEPROVISIONED_STATUSES),
    ContactStatus.BOGUS: frozenset(DEPROVISIONED_STATUSES),
    ContactStatus.UNKNOWN: frozenset(DEPROVISIONED_STATUSES),
    ContactStatus.DELETING: frozenset(DEPROVISIONED_STATUSES),
}
