from backoffice.cli import DEFAULT_PASSWORD
from backoffice.models import ProductCategory, User
from backoffice.seed_data import CATEGORY_SETS


class TestCategorySeed:

    def test_seed_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()
        expected = len(CATEGORY_SETS['women'])

        result = runner.invoke(args=['categories', 'seed', '--set', 'women'])
        assert result.exit_code == 0
        assert f'created {expected}, skipped 0' in result.output

        result = runner.invoke(args=['categories', 'seed', '--set', 'women'])
        assert f'created 0, skipped {expected}' in result.output
        assert db_session.query(ProductCategory).count() == expected

    def test_seed_skips_existing_prefix(self, app, db_session, category):
        result = app.test_cli_runner().invoke(args=['categories', 'seed', '--set', 'women'])
        assert 'prefix DRES already exists' in result.output
        assert db_session.query(ProductCategory).filter_by(prefix='DRES').count() == 1

    def test_seed_all_sets(self, app, db_session):
        app.test_cli_runner().invoke(args=['categories', 'seed'])
        total = sum(len(entries) for entries in CATEGORY_SETS.values())
        assert db_session.query(ProductCategory).count() == total


class TestUsersCommands:

    def test_create_user(self, app, db_session):
        result = app.test_cli_runner().invoke(args=[
            'users', 'create',
            '--email', 'owner@itkmmshop.local',
            '--password', 'Owner12345',
            '--role', 'admin',
            '--first-name', 'Owner',
            '--last-name', 'Shop',
        ])
        assert result.exit_code == 0
        assert 'PASS Created user: owner@itkmmshop.local' in result.output
        assert db_session.query(User).filter_by(email='owner@itkmmshop.local').one().role == 'admin'

    def test_create_user_weak_password(self, app, db_session):
        result = app.test_cli_runner().invoke(args=[
            'users', 'create',
            '--email', 'weak@itkmmshop.local',
            '--password', 'short',
            '--role', 'staff',
            '--first-name', 'Weak',
            '--last-name', 'Pass',
        ])
        assert 'FAIL' in result.output
        assert db_session.query(User).count() == 0

    def test_system_init_creates_default_accounts(self, app, client, db_session):
        result = app.test_cli_runner().invoke(args=['system', 'init'])
        assert result.exit_code == 0

        response = client.post('/api/auth/login', json={
            'email': 'admin@itkmmshop.local',
            'password': DEFAULT_PASSWORD,
        })
        assert response.status_code == 200
        assert response.json['user']['role'] == 'admin'

        again = app.test_cli_runner().invoke(args=['system', 'init'])
        assert 'already exists' in again.output
