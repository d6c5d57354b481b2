# provisioning_app/models/contact/mapping.py
"""
Contact Mapping: links a parent Contact to a pupil's Moodle account by Admissions Number.
"""

from flask import current_app
from sqlalchemy import Index
from sqlalchemy.orm import reconstructor

from ..base import BaseModel, db, utcnow
from ..moodle import MoodleUser


class ContactMapping(BaseModel):
    """
    A parent-to-pupil link.

    Mapping gives the parent's Moodle user the parent role in the pupil's user
    context; unmapping removes that role assignment.
    """

    __tablename__ = "parent_moodle_provisioning_contact_mapping"

    id = db.Column(db.Integer, primary_key=True)
    contact_id = db.Column(
        db.Integer, db.ForeignKey("parent_moodle_provisioning.id"), nullable=False, index=True
    )
    mis_id = db.Column(db.Integer, nullable=True)  # MIS ID of the pupil
    external_mis_id = db.Column(db.String(255), nullable=True)
    adno = db.Column(db.String(255), nullable=False)  # Admissions Number, Moodle idnumber
    username = db.Column(db.String(255), nullable=True)  # pupil's Moodle username
    mdl_user_id = db.Column(db.Integer, nullable=True)
    date_created = db.Column(db.DateTime, nullable=True)
    date_updated = db.Column(db.DateTime, nullable=True)
    date_synced = db.Column(db.DateTime, nullable=True)

    __table_args__ = (Index("idx_contact_mapping_adno", "contact_id", "adno"),)

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._mdl_user = None

    @reconstructor
    def _init_on_load(self):
        self._mdl_user = None

    def __repr__(self):
        return f"<ContactMapping contact={self.contact_id} adno={self.adno}>"

    def __str__(self):
        return f"[ContactMapping]{self.id}: Contact {self.contact_id} -> Adno {self.adno} ({self.username})"

    def get_adno(self):
        return self.adno

    def set_mdl_user(self, mdl_user):
        """Attach an already-loaded pupil Moodle user"""
        self._mdl_user = mdl_user
        self.mdl_user_id = mdl_user.id if mdl_user is not None else None

    def load_mdl_user(self):
        """
        Return the pupil's Moodle user, loading it on first use.

        Raises:
            LookupError: if no Moodle user matches this mapping
        """
        if self._mdl_user is not None:
            return self._mdl_user

        user = None
        if self.mdl_user_id:
            user = db.session.get(MoodleUser, self.mdl_user_id)
        if user is None or user.deleted:
            user = MoodleUser.find_by_idnumber(self.adno)
        if user is None:
            raise LookupError(f"No Moodle user with idnumber (Adno) {self.adno} for {self}")

        self._mdl_user = user
        return user

    def save(self):
        """Insert or update this mapping. Raises PersistenceError on failure."""
        now = utcnow()
        if self.id is None:
            self.date_created = now
            db.session.add(self)
        self.date_updated = now
        self.commit(f"saving Contact Mapping for Adno {self.adno}")
        current_app.logger.debug(f"Saved {self}")
        return True

    def _pupil_context_id(self):
        pupil = self.load_mdl_user()
        context = pupil.get_user_context()
        if context is None:
            current_app.logger.warning(f"Moodle user {pupil.id} has no user context; cannot map {self}")
            return None
        return context.id

    def map(self, parent_user):
        """
        Give parent_user the parent role in the pupil's user context.

        Returns:
            True if the role assignment exists afterwards, False if it could not be made
            (for instance because the parent has no Moodle account yet)
        """
        if parent_user is None:
            current_app.logger.info(
                f"Parent has no Moodle account yet; {self} will be mapped once provisioned"
            )
            return False

        context_id = self._pupil_context_id()
        if context_id is None:
            return False

        role_id = current_app.config["MOODLE_PARENT_ROLE_ID"]
        if parent_user.get_role_assignment(role_id, context_id):
            current_app.logger.debug(f"{self} already mapped in context {context_id}")
            return True

        parent_user.add_role_assignment(
            role_id, context_id, current_app.config["MOODLE_MODIFIER_ID"]
        )
        current_app.logger.info(f"Mapped {self} in context {context_id}")
        return True

    def unmap(self, parent_user):
        """Remove the parent role from parent_user in the pupil's user context"""
        if parent_user is None:
            return False

        context_id = self._pupil_context_id()
        if context_id is None:
            return False

        removed = parent_user.remove_role_assignment(
            current_app.config["MOODLE_PARENT_ROLE_ID"], context_id
        )
        current_app.logger.info(f"Unmapped {self}; removed {removed} role assignment(s)")
        return removed > 0

    def delete(self):
        """Permanently delete this mapping. Returns the number of rows removed."""
        db.session.delete(self)
        self.commit(f"deleting Contact Mapping {self.id}")
        return 1
