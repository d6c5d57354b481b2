# provisioning_app/errors.py
"""
Exception types raised by the provisioning models.

Callers are expected to catch ``ProvisioningError`` (or one of its subclasses),
log it and surface the message to an administrator.
"""


class ProvisioningError(Exception):
    """Base class for all provisioning errors"""

    code = "PROVISIONING_ERROR"
    default_message = "Provisioning error"

    def __init__(self, message=None):
        if message is None:
            message = self.default_message
        self.message = message
        super().__init__(message)

    def to_dict(self):
        return {"code": self.code, "message": self.message}


class InvalidArgumentError(ProvisioningError, ValueError):
    """A missing or malformed argument, or a status that does not permit the operation"""

    code = "INVALID_ARGUMENT"
    default_message = "Invalid argument"


class PersistenceError(ProvisioningError):
    """A write to the database failed or affected an unexpected number of rows"""

    code = "PERSISTENCE_ERROR"
    default_message = "Database write failed"


class DuplicateAccountError(ProvisioningError):
    """The email address is already present in the external auth table"""

    code = "DUPLICATE_ACCOUNT"
    default_message = "Parent account already exists in the external users table"


class ContactStateError(ProvisioningError):
    """The Contact is in a state where the requested operation is refused"""

    code = "CONTACT_STATE"
    default_message = "Operation not permitted for this Contact"
