import pytest
from catalog_api.app_factory import create_app
from catalog_api.config import TestConfig
from catalog_api.init_db import db


VALID_USER = {
    'name': 'Asha Rao',
    'email': 'asha@example.com',
    'mobile': '9876543210',
    'password': 'Abcdefg1',
}


@pytest.fixture
def app(tmp_path):
    app = create_app(TestConfig)
    app.config['UPLOAD_FOLDER'] = str(tmp_path / 'uploads')
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def register_user(client):
    def _register(**overrides):
        payload = dict(VALID_USER, **overrides)
        return client.post('/api/auth/register', json=payload)
    return _register


@pytest.fixture
def auth_headers(client, register_user):
    register_user()
    response = client.post('/api/auth/login', json={
        'email': VALID_USER['email'],
        'password': VALID_USER['password'],
    })
    return {'Authorization': f"Bearer {response.get_json()['token']}"}
