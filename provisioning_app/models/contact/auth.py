# provisioning_app/models/contact/auth.py
"""
Auth staging table read by the external Moodle provisioning cron.
"""

from ..base import BaseModel, db

AUTH_ENTRY_DESCRIPTION = "Parent Moodle Account"


class AuthEntry(BaseModel):
    """
    One row per approved Contact awaiting (or holding) a Moodle account.

    Moodle's external database authentication reads this table; deleting the row
    prevents login without removing any Moodle data.
    """

    __tablename__ = "parent_moodle_provisioning_auth"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(255), nullable=False)
    parent_title = db.Column(db.String(50), nullable=True)
    parent_fname = db.Column(db.String(255), nullable=True)
    parent_sname = db.Column(db.String(255), nullable=True)
    parent_email = db.Column(db.String(255), nullable=False, index=True)
    description = db.Column(db.String(255), nullable=True)
    request_id = db.Column(db.Integer, nullable=True, index=True)

    def __repr__(self):
        return f"<AuthEntry {self.username} request={self.request_id}>"

    @staticmethod
    def email_exists(email):
        """Whether any auth row already uses this parent email"""
        return (
            db.session.query(AuthEntry.id)
            .filter(AuthEntry.parent_email == (email or "").strip().lower())
            .first()
            is not None
        )
