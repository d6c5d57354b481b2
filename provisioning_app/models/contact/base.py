# provisioning_app/models/contact/base.py
"""
Contact model: a parent within the MIS who should have a Moodle account.

A Contact tracks the account request through its status lifecycle, stages the
account in the auth table on approval and links the parent to pupils through
Contact Mappings.
"""

import re

from flask import current_app
from sqlalchemy import Enum, Index, delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import reconstructor, validates

from ...errors import ContactStateError, DuplicateAccountError, InvalidArgumentError, PersistenceError
from ...utils.time import format_comment_timestamp
from ..base import BaseModel, db, utcnow
from ..moodle import MoodleUser
from ..option import PENDING_REQUESTS_TRANSIENT, STATIC_CONTEXTS_OPTION, PluginOption
from .auth import AUTH_ENTRY_DESCRIPTION, AuthEntry
from .enums import DEPROVISIONED_STATUSES, ENABLED_STATUSES, ContactStatus
from .mapping import ContactMapping

_NOT_LOADED = object()
_CONTEXT_ID = re.compile(r"[0-9]+")


class Contact(BaseModel):
    """
    A parent account request sourced from the MIS.

    New Contacts are always created in the ``pending`` status.
    """

    __tablename__ = "parent_moodle_provisioning"

    id = db.Column(db.Integer, primary_key=True)
    mis_id = db.Column(db.Integer, nullable=True)  # MIS primary key of the person
    external_mis_id = db.Column(db.String(255), nullable=True, index=True)  # usually a GUID
    mdl_user_id = db.Column(db.Integer, nullable=True)

    title = db.Column(db.String(50), nullable=True)
    forename = db.Column(db.String(255), nullable=True)
    surname = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), nullable=True, index=True)

    status = db.Column(
        Enum(
            ContactStatus,
            name="contact_status_enum",
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        nullable=False,
        default=ContactStatus.PENDING,
        index=True,
    )
    staff_comment = db.Column(db.Text, nullable=True)  # from the admin interface
    system_comment = db.Column(db.Text, nullable=True)  # audit lines, errors, info

    date_created = db.Column(db.DateTime, nullable=True)
    date_updated = db.Column(db.DateTime, nullable=True)
    date_approved = db.Column(db.DateTime, nullable=True)
    date_synced = db.Column(db.DateTime, nullable=True)  # last evaluated by an MIS sync

    __table_args__ = (Index("idx_provisioning_status_email", "status", "email"),)

    # Columns copied by load_from_row
    COLUMNS = (
        "id",
        "mis_id",
        "external_mis_id",
        "mdl_user_id",
        "title",
        "forename",
        "surname",
        "email",
        "status",
        "staff_comment",
        "system_comment",
        "date_created",
        "date_updated",
        "date_approved",
        "date_synced",
    )

    # Columns written by save() on update
    MUTABLE_FIELDS = COLUMNS[1:]

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._reset_caches()

    @reconstructor
    def _reset_caches(self):
        self._mdl_user = _NOT_LOADED
        self._contact_mappings = None

    def __repr__(self):
        return f"<Contact {self.id} {self.email} ({self.status.value if self.status else None})>"

    def __str__(self):
        return (
            f"[Contact]{self.id}: MIS ID: {self.mis_id}, external MIS ID: {self.external_mis_id}, "
            f"{self.title} {self.forename} {self.surname}"
        )

    @validates("status")
    def validate_status(self, key, value):
        if value is None:
            return None
        try:
            return ContactStatus.coerce(value)
        except ValueError:
            raise InvalidArgumentError(
                f"'{value}' is not a valid status. Valid statuses are: {';'.join(ContactStatus.values())}"
            ) from None

    @validates("mis_id")
    def validate_mis_id(self, key, value):
        if value is None or value == "":
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            raise InvalidArgumentError(f"MIS ID must be an integer, got '{value}'") from None

    def _require_id(self, action):
        if not self.id or not isinstance(self.id, int) or isinstance(self.id, bool):
            error = f"The id must be set to a non-zero integer before {action}. Use the load() method."
            current_app.logger.error(error)
            raise InvalidArgumentError(error)

    def _with_comment(self, text):
        if self.system_comment:
            return f"{self.system_comment}\n{text}"
        return text

    # Loading

    def load(self, property="id"):
        """
        Load this Contact from the database, matching on ``id`` or ``external_mis_id``.

        Returns:
            bool: whether a row was found
        """
        if property == "id":
            self._require_id("loading")
            current_app.logger.debug(f"Load Contact with ID {self.id} from table '{self.__tablename__}'")
            statement = select(Contact).where(Contact.id == self.id)
        elif property == "external_mis_id":
            if not self.external_mis_id:
                error = "The external_mis_id must be set before loading."
                current_app.logger.error(error)
                raise InvalidArgumentError(error)
            current_app.logger.debug(
                f"Load Contact with external MIS ID {self.external_mis_id} from table '{self.__tablename__}'"
            )
            statement = select(Contact).where(Contact.external_mis_id == self.external_mis_id)
        else:
            raise InvalidArgumentError(
                f"Cannot load a Contact by '{property}'. Use 'id' or 'external_mis_id'."
            )

        row = db.session.execute(
            statement.execution_options(populate_existing=True)
        ).scalars().first()
        if row is not None:
            self.load_from_row(row)
            return True

        current_app.logger.debug(
            f"Did not find a database row for Contact {self.id}. (This is our ID, not the MIS ID)."
        )
        return False

    def load_from_row(self, row):
        """Copy the column values of row (a Contact or a result row) into this object"""
        for name in self.COLUMNS:
            setattr(self, name, getattr(row, name))
        self._reset_caches()
        current_app.logger.debug(f"Loaded record for {self}")

    @classmethod
    def find_by_id(cls, contact_id):
        return db.session.get(cls, contact_id)

    @classmethod
    def find_by_external_mis_id(cls, external_mis_id):
        return cls.query.filter_by(external_mis_id=external_mis_id).first()

    @classmethod
    def load_all(cls, status):
        """Return every Contact currently in the given status"""
        try:
            status = ContactStatus.coerce(status)
        except ValueError:
            raise InvalidArgumentError(f"'{status}' is not a valid status.") from None

        contacts = cls.query.filter_by(status=status).order_by(cls.id).all()
        if not contacts:
            current_app.logger.info(f"No Contacts were fetched with the status {status.value}")
            return []

        current_app.logger.debug(f"Fetched {len(contacts)} Contacts with the status {status.value}")
        return contacts

    @classmethod
    def load_all_approved(cls):
        return cls.load_all(ContactStatus.APPROVED)

    @classmethod
    def get_pending_count(cls):
        return cls.query.filter_by(status=ContactStatus.PENDING).count()

    @classmethod
    def update_pending_count(cls):
        """Store the pending count in a transient option and return it"""
        count = cls.get_pending_count()
        stored = PluginOption.set_option(
            PENDING_REQUESTS_TRANSIENT,
            count,
            value_type="integer",
            ttl_seconds=current_app.config.get("PENDING_COUNT_TTL_SECONDS", 3600),
        )
        if not stored:
            current_app.logger.warning(
                f"Could not store the pending request count ({count}) in the "
                f"'{PENDING_REQUESTS_TRANSIENT}' transient; it will be recounted on next use."
            )
        return count

    # Writing

    def save(self):
        """
        Insert this Contact if it has no id, otherwise update every mutable field.
        New Contacts are **always** created with the status 'pending'.

        Returns:
            int: number of affected rows
        """
        if self.email:
            self.email = self.email.strip().lower()

        if not self.id or not isinstance(self.id, int):
            current_app.logger.debug("ID was not set, so creating a new Contact.")
            self.id = None
            self.status = ContactStatus.PENDING
            self.date_created = utcnow()
            db.session.add(self)
            self.commit("creating a new Contact")
            current_app.logger.info(f"Created a new Contact {self}.")
            return 1

        current_app.logger.debug(f"ID was set, so updating {self}.")
        affected_rows = self.execute_write(self._update_statement(), f"updating Contact {self.id}")
        current_app.logger.debug(f"Updated {self}. Affected rows: {affected_rows}")
        return affected_rows

    def _update_statement(self):
        """UPDATE of every mutable field for this Contact's row; stamps date_updated"""
        self.date_updated = utcnow()
        values = {name: getattr(self, name) for name in self.MUTABLE_FIELDS}
        return (
            update(Contact)
            .where(Contact.id == self.id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

    def approve_for_provisioning(self):
        """
        Approve a pending request and stage the parent in the auth table for the
        next provisioning cycle.

        The status change and the auth table row are committed together.

        Raises:
            InvalidArgumentError: if the id or email is unset, or the status is not 'pending'
            DuplicateAccountError: if the email is already in the auth table; the
                Contact is marked 'duplicate'
            PersistenceError: if the write fails; nothing is stored
        """
        self._require_id("approving")

        if self.status != ContactStatus.PENDING or not self.status.can_transition(ContactStatus.APPROVED):
            raise InvalidArgumentError(
                "An account request can only be approved for provisioning from the 'pending' status."
            )

        email = (self.email or "").strip().lower()
        if not email:
            error = f"Cannot approve {self} for provisioning as it has no email address."
            current_app.logger.error(error)
            raise InvalidArgumentError(error)

        previous = (self.system_comment, self.status, self.date_approved, self.date_updated)

        approved_text = (
            f"{self} Approved for provisioning at {format_comment_timestamp()}"
            " -- awaiting next provision cycle"
        )
        current_app.logger.info(approved_text)
        self.email = email
        self.system_comment = self._with_comment(approved_text)
        self.status = ContactStatus.APPROVED
        self.date_approved = utcnow()

        # check for pre-existence of a parent with this email
        if AuthEntry.email_exists(email):
            duplicate_text = (
                f"Unable to provision {self}, as email address '{email}' already exists "
                f"in external users table -- {format_comment_timestamp()}"
            )
            current_app.logger.warning(duplicate_text)
            self.system_comment = self._with_comment(duplicate_text)
            self.status = ContactStatus.DUPLICATE
            self.save()
            raise DuplicateAccountError(
                f"Unable to provision {self}, as email address already exists in external "
                "users table. Marked as duplicate."
            )

        # wait in the auth table until the next cron-initiated provision cycle
        entry = AuthEntry(
            username=email,
            parent_title=self.title,
            parent_fname=f"{self.title or ''} {self.forename or ''}".strip(),
            parent_sname=self.surname,
            parent_email=email,
            description=AUTH_ENTRY_DESCRIPTION,
            request_id=self.id,
        )
        db.session.add(entry)
        try:
            self.execute_write(self._update_statement(), f"approving {self} and adding it to the auth table")
        except PersistenceError:
            self.system_comment, self.status, self.date_approved, self.date_updated = previous
            raise

        current_app.logger.debug(f"Added 1 row to the auth table for {self}")
        return 1

    def append_system_comment(self, comment):
        """Append a line to the system comment and persist it. Returns affected rows."""
        self._require_id("appending a system comment")

        self.system_comment = self._with_comment(comment)
        self.date_updated = utcnow()
        return self.execute_write(
            update(Contact)
            .where(Contact.id == self.id)
            .values(system_comment=self.system_comment, date_updated=self.date_updated)
            .execution_options(synchronize_session=False),
            f"appending a system comment to Contact {self.id}",
        )

    def deprovision(self, status):
        """
        Remove the auth table entry and move the request to a de-provisioned status.

        This prevents login to the Moodle account but does not remove any data.
        """
        self._require_id("deprovisioning")

        try:
            target = ContactStatus.coerce(status)
        except ValueError:
            target = None
        if target not in DEPROVISIONED_STATUSES or (
            self.status is not None and not self.status.can_transition(target)
        ):
            raise InvalidArgumentError(
                f"The provided status {status} must be one of the statuses that are valid for "
                f"deprovisioned accounts. Valid statuses are: "
                f"{';'.join(s.value for s in DEPROVISIONED_STATUSES)}"
            )

        removed = self.execute_write(
            delete(AuthEntry)
            .where(AuthEntry.request_id == self.id)
            .execution_options(synchronize_session=False),
            f"deleting the auth table row for Contact {self.id}",
        )
        if removed < 1:
            error = f"{removed} rows were affected when trying to delete the row from the auth table."
            current_app.logger.error(error)
            raise PersistenceError(error)

        self.append_system_comment(
            f"De-provisioned at {format_comment_timestamp()}. Status set to '{target.value}'."
        )
        self.status = target
        return self.save()

    # Moodle user

    @property
    def mdl_user(self):
        """The Moodle user with this Contact's email, or None"""
        if self._mdl_user is _NOT_LOADED:
            self._mdl_user = MoodleUser.find_by_email(self.email)
        return self._mdl_user

    def does_mdl_user_exist(self):
        return self.mdl_user is not None

    def is_provisioned_and_enabled(self):
        """True if the Moodle user exists and is not suspended, or the status is approved/provisioned"""
        user = self.mdl_user
        if user is not None and not user.is_suspended:
            return True
        return self.status in ENABLED_STATUSES

    def add_role_in_static_contexts(self):
        """
        Assign the parent role to this Contact's Moodle user in every context listed
        in the 'contexts-to-add-role' option.
        """
        contexts_raw = PluginOption.get_option(STATIC_CONTEXTS_OPTION)

        current_app.logger.info(
            "Will now add the role assignments for all static contexts if not already assigned."
        )

        if not contexts_raw or not str(contexts_raw).strip():
            current_app.logger.warning(
                'There were no "Contexts to Add Role" found in the plugin settings, so there are '
                "no static contexts to set. Review the plugin settings to ensure this is correct."
            )
            return True

        user = self.mdl_user
        if user is None:
            raise ContactStateError(f"Cannot add static role assignments for {self}: no Moodle user exists.")

        role_id = current_app.config["MOODLE_PARENT_ROLE_ID"]
        modifier_id = current_app.config["MOODLE_MODIFIER_ID"]

        for context in str(contexts_raw).split("\n"):
            context = context.strip()
            if not context:
                continue

            if not _CONTEXT_ID.fullmatch(context):
                current_app.logger.warning(
                    f"Ignoring {context} as it contains extraneous non-numeric characters. "
                    "The context IDs must be integer values only."
                )
                continue

            context_id = int(context)
            if not context_id:
                current_app.logger.warning(f"Ignoring {context} as it evaluates to zero.")
                continue

            if user.get_role_assignment(role_id, context_id):
                current_app.logger.info(
                    f"Parent with ID {user.id} already had a role assignment for context {context_id}"
                )
            else:
                current_app.logger.info(
                    f"Will add role assignment for parent {user.id} for context {context_id}"
                )
                user.add_role_assignment(role_id, context_id, modifier_id)

        current_app.logger.info("Completed adding role assignments for static contexts.")
        return True

    # Contact Mappings

    def get_contact_mappings(self, force_reload=False):
        """
        Return the Contact Mappings for this Contact.

        Args:
            force_reload: ignore the cache and re-query the database
        """
        if self._contact_mappings is not None and not force_reload:
            current_app.logger.debug(f"Return {len(self._contact_mappings)} cached Contact Mappings")
            return self._contact_mappings

        results = ContactMapping.query.filter_by(contact_id=self.id).order_by(ContactMapping.id).all()

        mappings = []
        for result in results:
            try:
                result.load_mdl_user()
            except (LookupError, SQLAlchemyError) as e:
                current_app.logger.warning(
                    f"Could not load Contact Mapping {result.id}. Exception was '{str(e)}'"
                )
                continue
            mappings.append(result)

        if mappings:
            current_app.logger.debug(f"Fetched {len(mappings)} Contact Mappings associated with {self}")
        else:
            current_app.logger.debug(f"No Contact Mappings for {self}")

        self._contact_mappings = mappings
        return self._contact_mappings

    def add_contact_mapping_by_adno(self, adno, mis_id=None, external_mis_id=None, username=None):
        """
        Connect this Contact with a pupil's Moodle user, identified by Admissions Number.

        Returns:
            bool: whether the parent role assignment is in place
        """
        self._require_id("adding a Contact Mapping")

        pupil = MoodleUser.find_by_idnumber(adno)
        if pupil is None:
            raise InvalidArgumentError(f"Unable to find a matching Moodle user with idnumber (Adno) {adno}")

        for mapping in self.get_contact_mappings():
            if str(adno) == str(mapping.get_adno()):
                current_app.logger.debug(f"Contact Mapping for {adno} already exists: {mapping}")
                return mapping.map(self.mdl_user)

        mapping = ContactMapping(
            contact_id=self.id,
            mis_id=mis_id,
            external_mis_id=external_mis_id,
            adno=str(adno),
            username=username,
        )
        mapping.set_mdl_user(pupil)
        mapping.save()
        self._contact_mappings.append(mapping)

        return mapping.map(self.mdl_user)

    def remove_contact_mapping_by_adno(self, adno):
        """
        Unmap and delete the Contact Mapping for the pupil with this Admissions Number.

        Returns:
            int: number of mappings deleted
        """
        self._require_id("removing a Contact Mapping")

        # match stored rows, including mappings whose pupil no longer loads
        mapping = (
            ContactMapping.query.filter_by(contact_id=self.id, adno=str(adno))
            .order_by(ContactMapping.id)
            .first()
        )
        if mapping is not None:
            current_app.logger.debug(f"Found mapping '{mapping}'. Will unmap and delete.")
            try:
                mapping.unmap(self.mdl_user)
            except LookupError as e:
                current_app.logger.warning(
                    f"Could not unmap {mapping} as its pupil was not found; deleting it anyway. "
                    f"Exception was '{str(e)}'"
                )
            mapping_id = mapping.id
            removed = mapping.delete()
            if self._contact_mappings is not None:
                self._contact_mappings = [
                    m for m in self._contact_mappings if m is not mapping and m.id != mapping_id
                ]
            return removed

        current_app.logger.warning(
            f"Did not find a Contact Mapping to match Admissions Number (idnumber) {adno}"
        )
        return 0

    def delete(self):
        """
        Permanently delete the request. Use deprovision() to merely disable an account.

        Raises:
            ContactStateError: while Contact Mappings exist, or while the account is
                still provisioned and enabled
        """
        self._require_id("deleting")

        # count stored rows; get_contact_mappings() skips mappings whose pupil is gone
        self._contact_mappings = None
        mapping_count = ContactMapping.query.filter_by(contact_id=self.id).count()
        if mapping_count:
            raise ContactStateError(
                f"Cannot delete a Contact '{self}' when Contact Mappings still exist for it "
                f"({mapping_count} found)."
            )

        if self.is_provisioned_and_enabled():
            raise ContactStateError(
                f"Cannot delete a Contact '{self}' as the user is still provisioned and enabled within "
                "Moodle, or because its status is considered approved or provisioned."
            )

        description = str(self)
        removed = self.execute_write(
            delete(Contact)
            .where(Contact.id == self.id)
            .execution_options(synchronize_session="fetch"),
            f"deleting Contact {self.id}",
        )
        current_app.logger.info(f"Deleted {description}. Affected rows: {removed}")
        return removed
