"""
Tests for the Flask CLI commands.
"""

from erp.models import Organization


class TestCreateOrganization:
    def test_creates_organization(self, app, session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=['create-organization', '--slug', 'north-wind', '--name', 'North Wind'])

        assert result.exit_code == 0
        assert 'Organization created.' in result.output
        session.expire_all()
        assert session.query(Organization).filter_by(slug='north-wind').count() == 1

    def test_rejects_invalid_slug(self, app, session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=['create-organization', '--slug', 'Bad Slug', '--name', 'Bad'])

        assert 'Invalid slug' in result.output
        assert session.query(Organization).count() == 0

    def test_rejects_duplicate_slug(self, app, org1):
        runner = app.test_cli_runner()

        result = runner.invoke(args=['create-organization', '--slug', org1.slug, '--name', 'Copy'])

        assert 'already exists' in result.output


class TestNextOrderNumber:
    def test_preview_first_number(self, app, org1):
        runner = app.test_cli_runner()

        result = runner.invoke(args=['next-order-number', str(org1.id), '--year', '2024'])

        assert result.exit_code == 0
        assert result.output.strip() == f'ORD-{org1.id}-2024-000001'

    def test_unknown_organization(self, app):
        runner = app.test_cli_runner()

        result = runner.invoke(args=['next-order-number', '4242'])

        assert 'not found' in result.output
