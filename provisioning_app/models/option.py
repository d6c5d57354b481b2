# provisioning_app/models/option.py

from datetime import timedelta

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import InvalidArgumentError
from .base import BaseModel, db, utcnow

# Newline-separated list of Moodle context ids in which every parent gets the parent role
STATIC_CONTEXTS_OPTION = "contexts-to-add-role"

# Transient holding the number of Contacts awaiting approval
PENDING_REQUESTS_TRANSIENT = "pending-requests"

VALUE_TYPES = ("string", "integer")


class PluginOption(BaseModel):
    """
    Host settings store for the provisioning plugin.

    Options with an ``expires_at`` behave as transients: they read as missing
    once the expiry time has passed.
    """

    __tablename__ = "plugin_options"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(191), unique=True, nullable=False, index=True)
    value = db.Column(db.Text, nullable=False)
    value_type = db.Column(db.String(20), default="string", nullable=False)  # one of VALUE_TYPES
    description = db.Column(db.Text, nullable=True)
    expires_at = db.Column(db.DateTime, nullable=True)  # null = never expires

    def __repr__(self):
        return f"<PluginOption {self.name}>"

    def is_expired(self, now=None):
        if self.expires_at is None:
            return False
        return self.expires_at <= (now or utcnow())

    def get_value(self):
        """Get the typed value from the stored string"""
        if self.value_type == "integer":
            try:
                return int(self.value)
            except ValueError:
                return 0
        return self.value

    def set_value(self, value):
        if self.value_type == "integer":
            self.value = str(int(value))
        else:
            self.value = str(value)

    @staticmethod
    def get_option(name, default=None):
        """Get an option value, or default when missing or expired"""
        try:
            option = PluginOption.query.filter_by(name=name).first()
        except SQLAlchemyError as e:
            current_app.logger.error(f"Database error getting option {name}: {str(e)}")
            return default
        if option is None or option.is_expired():
            return default
        return option.get_value()

    @staticmethod
    def set_option(name, value, value_type="string", description=None, ttl_seconds=None):
        """Create or update an option; ``ttl_seconds`` makes it a transient"""
        if value_type not in VALUE_TYPES:
            raise InvalidArgumentError(
                f"Unknown option type '{value_type}'. Valid types are: {';'.join(VALUE_TYPES)}"
            )

        try:
            option = PluginOption.query.filter_by(name=name).first()

            if option:
                option.value_type = value_type
                option.set_value(value)
                if description:
                    option.description = description
            else:
                option = PluginOption(name=name, value_type=value_type, description=description)
                option.set_value(value)
                db.session.add(option)

            option.expires_at = (
                utcnow() + timedelta(seconds=ttl_seconds) if ttl_seconds else None
            )
            db.session.commit()
            return True
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error(f"Database error setting option {name}: {str(e)}")
            return False
