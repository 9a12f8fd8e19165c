from datetime import timedelta

import pytest

from portfolio_admin import create_app
from portfolio_admin.exceptions import DeliveryFailed
from portfolio_admin.models import db, utcnow
from portfolio_admin.repositories import AdminRepository

ADMIN_EMAIL = "a@b.com"
ADMIN_PASSWORD = "correct"
USER_EMAIL = "visitor@b.com"
USER_PASSWORD = "also-correct"


class FakeClock:
    def __init__(self):
        self.now = utcnow()

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class RecordingSender:
    def __init__(self):
        self.codes = []
        self.resets = []
        self.fail = False

    def send_verification_code(self, email, code):
        if self.fail:
            raise DeliveryFailed()
        self.codes.append((email, code))
        return True

    def send_password_reset(self, email, link):
        if self.fail:
            raise DeliveryFailed()
        self.resets.append((email, link))
        return True

    @property
    def last_code(self):
        return self.codes[-1][1]


@pytest.fixture
def app():
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret',
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'SMTP_ENABLED': False,
    })
    with app.app_context():
        auth_system = app.extensions['auth_system']
        auth_system.identity.create_account(ADMIN_EMAIL, ADMIN_PASSWORD)
        AdminRepository().add_admin(ADMIN_EMAIL)
        auth_system.identity.create_account(USER_EMAIL, USER_PASSWORD)
    yield app
    with app.app_context():
        db.drop_all()


@pytest.fixture
def clock(app):
    clock = FakeClock()
    app.extensions['auth_system'].clock = clock
    return clock


@pytest.fixture
def sender(app):
    sender = RecordingSender()
    app.extensions['email_sender'] = sender
    return sender


@pytest.fixture
def auth_system(app):
    return app.extensions['auth_system']


@pytest.fixture
def ctx(app):
    with app.test_request_context():
        yield


@pytest.fixture
def client(app):
    return app.test_client()
