"""
CLI commands for administering parent account requests.

Registered on the Flask app as ``flask contacts ...``.
"""

from __future__ import annotations

import json

import click
from flask.cli import AppGroup

from provisioning_app.errors import ProvisioningError
from provisioning_app.models import PENDING_REQUESTS_TRANSIENT, Contact, ContactStatus, PluginOption


def _load_contact(contact_id: int) -> Contact:
    contact = Contact(id=contact_id)
    if not contact.load():
        raise click.ClickException(f"No Contact with ID {contact_id}.")
    return contact


def _run(action):
    """Invoke action, turning provisioning errors into a clean CLI failure."""
    try:
        return action()
    except ProvisioningError as exc:
        raise click.ClickException(f"{exc.code}: {exc.message}") from exc


@click.group(name="contacts", cls=AppGroup)
def contacts_cli():
    """Parent Moodle account request management."""


@contacts_cli.command("list")
@click.option(
    "--status",
    type=click.Choice(ContactStatus.values()),
    default=ContactStatus.PENDING.value,
    show_default=True,
    help="Only list Contacts in this status.",
)
def list_contacts(status):
    """List Contacts as JSON lines."""
    for contact in Contact.load_all(status):
        click.echo(
            json.dumps(
                {
                    "id": contact.id,
                    "mis_id": contact.mis_id,
                    "external_mis_id": contact.external_mis_id,
                    "name": f"{contact.title or ''} {contact.forename or ''} {contact.surname or ''}".strip(),
                    "email": contact.email,
                    "status": contact.status.value,
                }
            )
        )


@contacts_cli.command("pending-count")
@click.option("--refresh", is_flag=True, help="Recount and store the cached pending count.")
def pending_count(refresh):
    """Show how many requests await approval."""
    if refresh:
        count = Contact.update_pending_count()
    else:
        count = PluginOption.get_option(PENDING_REQUESTS_TRANSIENT)
        if count is None:
            count = Contact.update_pending_count()
    click.echo(count)


@contacts_cli.command("approve")
@click.argument("contact_id", type=int)
def approve(contact_id):
    """Approve a pending request for provisioning."""
    contact = _load_contact(contact_id)
    _run(contact.approve_for_provisioning)
    click.echo(f"Approved {contact}")


@contacts_cli.command("deprovision")
@click.argument("contact_id", type=int)
@click.argument("status")
def deprovision(contact_id, status):
    """Remove the auth entry and set a de-provisioned STATUS."""
    contact = _load_contact(contact_id)
    _run(lambda: contact.deprovision(status))
    click.echo(f"De-provisioned {contact} ({contact.status.value})")


@contacts_cli.command("delete")
@click.argument("contact_id", type=int)
def delete(contact_id):
    """Permanently delete a request."""
    contact = _load_contact(contact_id)
    removed = _run(contact.delete)
    click.echo(f"Deleted {removed} Contact(s)")


@contacts_cli.command("map")
@click.argument("contact_id", type=int)
@click.argument("adno")
@click.option("--mis-id", type=int, default=None, help="MIS ID of the pupil.")
@click.option("--external-mis-id", default=None, help="External MIS ID of the pupil.")
@click.option("--username", default=None, help="Pupil's Moodle username.")
def map_pupil(contact_id, adno, mis_id, external_mis_id, username):
    """Link a Contact to the pupil with Admissions Number ADNO."""
    contact = _load_contact(contact_id)
    mapped = _run(lambda: contact.add_contact_mapping_by_adno(adno, mis_id, external_mis_id, username))
    if mapped:
        click.echo(f"Mapped {contact} to {adno}")
    else:
        click.echo(f"Saved mapping for {adno}; role assignment will be made once the parent is provisioned")


@contacts_cli.command("unmap")
@click.argument("contact_id", type=int)
@click.argument("adno")
def unmap_pupil(contact_id, adno):
    """Remove the link between a Contact and the pupil with Admissions Number ADNO."""
    contact = _load_contact(contact_id)
    removed = _run(lambda: contact.remove_contact_mapping_by_adno(adno))
    if not removed:
        raise click.ClickException(f"No Contact Mapping for {adno}.")
    click.echo(f"Unmapped {adno}")


@contacts_cli.command("add-static-roles")
@click.argument("contact_id", type=int)
def add_static_roles(contact_id):
    """Assign the parent role in every configured static context."""
    contact = _load_contact(contact_id)
    _run(contact.add_role_in_static_contexts)
    click.echo(f"Static role assignments checked for {contact}")


def init_cli(app):
    app.cli.add_command(contacts_cli)
