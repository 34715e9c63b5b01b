"""Shared pytest fixtures.

app            application built from TestingConfig on an in-memory SQLite database
client         Flask test client
admin          an ADMIN user
auth_headers   bearer-token headers for ``admin``
admit          helper posting an admission and returning the response
"""
import pytest

from schoolms.app import create_app
from schoolms.config import TestingConfig
from schoolms.extensions import db
from schoolms.models import User
from schoolms.utils.tokens import create_access_token


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin(app):
    user = User(name='Head Teacher', email='admin@school.test', role='ADMIN')
    user.set_password('admin-password')
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def auth_headers(admin):
    return {'Authorization': f'Bearer {create_access_token(admin)}'}


@pytest.fixture
def admit(client, auth_headers):
    def _admit(name, class_name='Senior 1', stream='A', **extra):
        payload = {
            'name': name,
            'age': 14,
            'class': class_name,
            'stream': stream,
            'parent': {'name': f'Parent of {name}'},
        }
        payload.update(extra)
        return client.post('/api/students', json=payload, headers=auth_headers)
    return _admit
