"""
Flask CLI commands.

Commands:
- flask init-db: Create every table
- flask create-organization: Create an organization
- flask next-order-number: Preview the next order number of an organization
"""
import re

import click
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from erp import database
from erp.models import Organization
from erp.services.order_number_service import peek_next_order_number

SLUG_PATTERN = r'^[a-z0-9]+(?:-[a-z0-9]+)*$'


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create the database schema."""
        database.create_schema()
        click.echo(click.style('Database schema created.', fg='green'))

    @app.cli.command('create-organization')
    @click.option('--slug', prompt=True, help='URL-safe identifier')
    @click.option('--name', prompt=True, help='Display name')
    def create_organization(slug, name):
        """Create a new organization."""
        if not re.match(SLUG_PATTERN, slug):
            click.echo(click.style('Invalid slug. Use lowercase letters, digits and dashes.', fg='red'))
            return

        session = database.get_session()
        if session.query(Organization).filter_by(slug=slug).first():
            click.echo(click.style(f'An organization with slug "{slug}" already exists.', fg='red'))
            return

        try:
            organization = Organization(slug=slug, name=name)
            session.add(organization)
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            click.echo(click.style(f'Error creating organization: {e}', fg='red'))
            return

        click.echo(click.style('Organization created.', fg='green', bold=True))
        click.echo(f'   ID: {organization.id}')
        click.echo(f'   Slug: {organization.slug}')

    @app.cli.command('next-order-number')
    @click.argument('org_id', type=int)
    @click.option('--year', type=int, default=None, help='Sequence year (defaults to current)')
    def next_order_number_command(org_id, year):
        """Show the next order number without allocating it."""
        session = database.get_session()
        if not session.get(Organization, org_id):
            click.echo(click.style(f'Organization {org_id} not found.', fg='red'))
            return
        prefix = current_app.config.get('ORDER_NUMBER_PREFIX', 'ORD')
        click.echo(peek_next_order_number(session, org_id, year=year, prefix=prefix))
