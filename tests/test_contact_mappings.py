"""
Tests for Contact Mappings: caching, adding and removing pupils by Admissions Number
and the role assignments made in Moodle.
"""

import logging

import pytest

from provisioning_app.errors import InvalidArgumentError
from provisioning_app.models import Contact, ContactMapping, MoodleRoleAssignment, MoodleUser, db


def _assignments_for(user):
    return MoodleRoleAssignment.query.filter_by(userid=user.id).order_by(MoodleRoleAssignment.id).all()


class TestGetContactMappings:
    """Test get_contact_mappings() and its cache"""

    def test_no_mappings(self, pending_contact):
        assert pending_contact.get_contact_mappings() == []

    def test_second_call_uses_cache(self, pending_contact, pupil_moodle_user, query_log):
        """Test cached mappings are returned without another database round trip"""
        pending_contact.add_contact_mapping_by_adno("004512")
        first = pending_contact.get_contact_mappings()
        query_log.clear()

        second = pending_contact.get_contact_mappings()

        assert second is first
        assert len(second) == 1
        assert query_log == []

    def test_force_reload_requeries(self, pending_contact, pupil_moodle_user, query_log):
        pending_contact.get_contact_mappings()
        db.session.add(ContactMapping(contact_id=pending_contact.id, adno="004512"))
        db.session.commit()
        query_log.clear()

        assert pending_contact.get_contact_mappings() == []
        mappings = pending_contact.get_contact_mappings(force_reload=True)

        assert [m.adno for m in mappings] == ["004512"]
        assert any("parent_moodle_provisioning_contact_mapping" in s for s in query_log)

    def test_reload_replaces_cache(self, pending_contact, pupil_moodle_user):
        """Test a forced reload does not duplicate entries already in the cache"""
        pending_contact.add_contact_mapping_by_adno("004512")
        pending_contact.get_contact_mappings(force_reload=True)
        mappings = pending_contact.get_contact_mappings(force_reload=True)
        assert len(mappings) == 1

    def test_unloadable_mapping_skipped(self, pending_contact, pupil_moodle_user, caplog):
        """Test a mapping whose pupil no longer exists in Moodle is skipped with a warning"""
        db.session.add(ContactMapping(contact_id=pending_contact.id, adno="004512"))
        db.session.add(ContactMapping(contact_id=pending_contact.id, adno="999999"))
        db.session.commit()

        with caplog.at_level(logging.WARNING):
            mappings = pending_contact.get_contact_mappings()

        assert [m.adno for m in mappings] == ["004512"]
        assert "Could not load Contact Mapping" in caplog.text
        assert ContactMapping.query.count() == 2

    def test_mappings_loaded_with_pupil(self, pending_contact, pupil_moodle_user):
        pending_contact.add_contact_mapping_by_adno("004512")
        mapping = pending_contact.get_contact_mappings(force_reload=True)[0]
        assert mapping.load_mdl_user().id == pupil_moodle_user.id


class TestAddContactMapping:
    """Test add_contact_mapping_by_adno()"""

    def test_add_mapping_assigns_parent_role(self, pending_contact, parent_moodle_user, pupil_moodle_user):
        """Test mapping gives the parent the parent role in the pupil's user context"""
        assert pending_contact.add_contact_mapping_by_adno("004512", mis_id=88, username="14parentp") is True

        mapping = ContactMapping.query.one()
        assert mapping.contact_id == pending_contact.id
        assert mapping.adno == "004512"
        assert mapping.mis_id == 88
        assert mapping.username == "14parentp"
        assert mapping.mdl_user_id == pupil_moodle_user.id
        assert mapping.date_created is not None

        assignments = _assignments_for(parent_moodle_user)
        assert len(assignments) == 1
        assignment = assignments[0]
        assert assignment.roleid == 9
        assert assignment.contextid == pupil_moodle_user.get_user_context().id
        assert assignment.modifierid == 2
        assert assignment.timemodified > 0

    def test_add_mapping_external_mis_id(self, pending_contact, pupil_moodle_user):
        pending_contact.add_contact_mapping_by_adno("004512", external_mis_id="c0ffee00-aaaa-bbbb-cccc-123456789abc")
        assert ContactMapping.query.one().external_mis_id == "c0ffee00-aaaa-bbbb-cccc-123456789abc"

    def test_add_mapping_updates_cache(self, pending_contact, pupil_moodle_user, second_pupil_moodle_user):
        pending_contact.get_contact_mappings()
        pending_contact.add_contact_mapping_by_adno("004512")
        pending_contact.add_contact_mapping_by_adno("004899")

        assert [m.adno for m in pending_contact.get_contact_mappings()] == ["004512", "004899"]

    def test_add_existing_mapping_is_idempotent(self, pending_contact, parent_moodle_user, pupil_moodle_user):
        pending_contact.add_contact_mapping_by_adno("004512")
        assert pending_contact.add_contact_mapping_by_adno("004512") is True

        assert ContactMapping.query.count() == 1
        assert len(_assignments_for(parent_moodle_user)) == 1

    def test_add_mapping_without_parent_account(self, pending_contact, pupil_moodle_user):
        """Test the mapping is stored even before the parent has a Moodle account"""
        assert pending_contact.add_contact_mapping_by_adno("004512") is False
        assert ContactMapping.query.count() == 1
        assert MoodleRoleAssignment.query.count() == 0

    def test_add_mapping_pupil_without_context(self, pending_contact, parent_moodle_user, app):
        pupil = MoodleUser(username="nocontext", idnumber="007777", email="nc@school.example")
        db.session.add(pupil)
        db.session.commit()

        assert pending_contact.add_contact_mapping_by_adno("007777") is False
        assert MoodleRoleAssignment.query.count() == 0

    def test_add_mapping_unknown_adno(self, pending_contact, pupil_moodle_user):
        with pytest.raises(InvalidArgumentError) as excinfo:
            pending_contact.add_contact_mapping_by_adno("123456")
        assert "idnumber (Adno) 123456" in str(excinfo.value)
        assert ContactMapping.query.count() == 0

    def test_add_mapping_requires_id(self, app, pupil_moodle_user):
        with pytest.raises(InvalidArgumentError):
            Contact(email="x@example.com").add_contact_mapping_by_adno("004512")


class TestRemoveContactMapping:
    """Test remove_contact_mapping_by_adno()"""

    def test_remove_mapping(self, pending_contact, parent_moodle_user, pupil_moodle_user, second_pupil_moodle_user):
        pending_contact.add_contact_mapping_by_adno("004512")
        pending_contact.add_contact_mapping_by_adno("004899")
        assert len(_assignments_for(parent_moodle_user)) == 2

        assert pending_contact.remove_contact_mapping_by_adno("004512") == 1

        assert [m.adno for m in ContactMapping.query.all()] == ["004899"]
        assert [m.adno for m in pending_contact.get_contact_mappings()] == ["004899"]
        remaining = _assignments_for(parent_moodle_user)
        assert [a.contextid for a in remaining] == [second_pupil_moodle_user.get_user_context().id]

    def test_remove_mapping_without_parent_account(self, pending_contact, pupil_moodle_user):
        pending_contact.add_contact_mapping_by_adno("004512")
        assert pending_contact.remove_contact_mapping_by_adno("004512") == 1
        assert ContactMapping.query.count() == 0

    def test_remove_mapping_whose_pupil_is_gone(
        self, pending_contact, parent_moodle_user, pupil_moodle_user, caplog
    ):
        """Test a mapping skipped by get_contact_mappings() can still be removed"""
        contact_id = pending_contact.id
        pending_contact.add_contact_mapping_by_adno("004512")
        pupil_moodle_user.deleted = 1
        db.session.commit()
        db.session.expunge_all()

        contact = Contact(id=contact_id)
        contact.load()
        with caplog.at_level(logging.WARNING):
            assert contact.get_contact_mappings() == []
            assert contact.remove_contact_mapping_by_adno("004512") == 1

        assert "deleting it anyway" in caplog.text
        assert ContactMapping.query.count() == 0
        assert contact.get_contact_mappings() == []

    def test_remove_unknown_mapping(self, pending_contact, pupil_moodle_user, caplog):
        pending_contact.add_contact_mapping_by_adno("004512")

        with caplog.at_level(logging.WARNING):
            assert pending_contact.remove_contact_mapping_by_adno("004899") == 0

        assert "Did not find a Contact Mapping" in caplog.text
        assert ContactMapping.query.count() == 1

    def test_contact_deletable_after_unmapping(self, pending_contact, pupil_moodle_user):
        pending_contact.add_contact_mapping_by_adno("004512")
        pending_contact.remove_contact_mapping_by_adno("004512")
        assert pending_contact.delete() == 1
