# provisioning_app/models/moodle.py
"""
Read/write models for the Moodle tables used during provisioning.

These live on the ``moodle`` bind so that the Moodle database can be separate
from the plugin tables.
"""

import time

from flask import current_app
from sqlalchemy import Index

from .base import BaseModel, db

# Moodle's CONTEXT_USER
CONTEXT_LEVEL_USER = 30


class MoodleContext(BaseModel):
    """A Moodle context (mdl_context)"""

    __bind_key__ = "moodle"
    __tablename__ = "mdl_context"

    id = db.Column(db.Integer, primary_key=True)
    contextlevel = db.Column(db.BigInteger, nullable=False, default=0)
    instanceid = db.Column(db.BigInteger, nullable=False, default=0)

    __table_args__ = (Index("idx_mdl_context_instance", "contextlevel", "instanceid"),)

    def __repr__(self):
        return f"<MoodleContext {self.id} level={self.contextlevel} instance={self.instanceid}>"


class MoodleRoleAssignment(BaseModel):
    """A role held by a Moodle user in a context (mdl_role_assignments)"""

    __bind_key__ = "moodle"
    __tablename__ = "mdl_role_assignments"

    id = db.Column(db.Integer, primary_key=True)
    roleid = db.Column(db.BigInteger, nullable=False, default=0)
    contextid = db.Column(db.BigInteger, nullable=False, default=0)
    userid = db.Column(db.BigInteger, nullable=False, default=0)
    timemodified = db.Column(db.BigInteger, nullable=False, default=0)
    modifierid = db.Column(db.BigInteger, nullable=False, default=0)
    component = db.Column(db.String(100), nullable=False, default="")
    itemid = db.Column(db.BigInteger, nullable=False, default=0)
    sortorder = db.Column(db.BigInteger, nullable=False, default=0)

    __table_args__ = (Index("idx_mdl_role_assignment", "userid", "roleid", "contextid"),)

    def __repr__(self):
        return f"<MoodleRoleAssignment user={self.userid} role={self.roleid} context={self.contextid}>"


class MoodleUser(BaseModel):
    """A Moodle user account (mdl_user). Parents are matched by email, pupils by idnumber (Adno)."""

    __bind_key__ = "moodle"
    __tablename__ = "mdl_user"

    id = db.Column(db.Integer, primary_key=True)
    auth = db.Column(db.String(20), nullable=False, default="manual")
    username = db.Column(db.String(100), nullable=False, default="", index=True)
    idnumber = db.Column(db.String(255), nullable=False, default="", index=True)
    email = db.Column(db.String(100), nullable=False, default="", index=True)
    firstname = db.Column(db.String(100), nullable=False, default="")
    lastname = db.Column(db.String(100), nullable=False, default="")
    suspended = db.Column(db.SmallInteger, nullable=False, default=0)
    deleted = db.Column(db.SmallInteger, nullable=False, default=0)

    def __repr__(self):
        return f"<MoodleUser {self.id} {self.username}>"

    @property
    def is_suspended(self):
        return self.suspended == 1

    @staticmethod
    def find_by_email(email):
        """Find a non-deleted Moodle user by email address (case-insensitive)"""
        if not email:
            return None
        return MoodleUser.query.filter(
            db.func.lower(MoodleUser.email) == email.strip().lower(),
            MoodleUser.deleted == 0,
        ).first()

    @staticmethod
    def find_by_idnumber(idnumber):
        """Find a non-deleted Moodle user by idnumber (the pupil's Admissions Number)"""
        if idnumber is None or str(idnumber).strip() == "":
            return None
        return MoodleUser.query.filter_by(idnumber=str(idnumber).strip(), deleted=0).first()

    def get_user_context(self):
        """Return this user's personal context, if Moodle has created one"""
        return MoodleContext.query.filter_by(
            contextlevel=CONTEXT_LEVEL_USER, instanceid=self.id
        ).first()

    def get_role_assignment(self, role_id, context_id):
        """Return the assignment of role_id to this user in context_id, or None"""
        return MoodleRoleAssignment.query.filter_by(
            userid=self.id, roleid=role_id, contextid=context_id
        ).first()

    def add_role_assignment(self, role_id, context_id, modifier_id, component="", itemid=0, sortorder=0):
        """Assign role_id to this user in context_id"""
        assignment = MoodleRoleAssignment(
            roleid=role_id,
            contextid=context_id,
            userid=self.id,
            timemodified=int(time.time()),
            modifierid=modifier_id,
            component=component,
            itemid=itemid,
            sortorder=sortorder,
        )
        db.session.add(assignment)
        self.commit(f"adding role {role_id} in context {context_id} for Moodle user {self.id}")
        current_app.logger.debug(
            f"Added role assignment for Moodle user {self.id}: role {role_id}, context {context_id}"
        )
        return assignment

    def remove_role_assignment(self, role_id, context_id):
        """Remove any assignment of role_id to this user in context_id. Returns the number removed."""
        removed = MoodleRoleAssignment.query.filter_by(
            userid=self.id, roleid=role_id, contextid=context_id
        ).delete(synchronize_session=False)
        self.commit(f"removing role {role_id} in context {context_id} for Moodle user {self.id}")
        return removed
