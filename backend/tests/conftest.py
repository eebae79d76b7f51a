import io

import pytest
from PIL import Image
from werkzeug.datastructures import FileStorage

from snapit import create_app, db
from snapit.config import TestConfig


def png_bytes(color=(200, 30, 30)):
    buf = io.BytesIO()
    Image.new('RGB', (4, 4), color).save(buf, format='PNG')
    return buf.getvalue()


def png_file(filename='photo.png'):
    return FileStorage(stream=io.BytesIO(png_bytes()), filename=filename, content_type='image/png')


@pytest.fixture
def app(tmp_path):
    class Config(TestConfig):
        UPLOAD_FOLDER = str(tmp_path / 'uploads')

    app = create_app(Config)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def ctx(app):
    """Run service-level code inside a request context."""
    with app.test_request_context():
        yield
        db.session.remove()


@pytest.fixture
def storage(app):
    return app.extensions['image_storage']


def register(client, name='Alice', email='a@x.com', password='Secret123'):
    response = client.post('/api/v1/user/register', json={
        'name': name,
        'email': email,
        'password': password,
        'confirmPassword': password,
    })
    assert response.status_code == 201, response.get_json()
    return response.get_json()


def bearer(token):
    return {'Authorization': f'Bearer {token}'}
