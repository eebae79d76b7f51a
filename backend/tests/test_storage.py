import io
import os
from unittest import mock

import cloudinary.exceptions
import pytest
from werkzeug.datastructures import FileStorage

from conftest import png_bytes, png_file
from snapit.errors import TransientError, ValidationError
from snapit.storage import (
    CloudinaryImageStorage,
    LocalImageStorage,
    StorageSettings,
    create_storage,
    read_image,
    release_all,
)


@pytest.fixture
def settings(tmp_path):
    return StorageSettings(
        backend='cloudinary',
        folder_name='snapit',
        upload_folder=str(tmp_path),
        timeout=3,
        allowed_extensions=frozenset({'png', 'jpg'}),
        cloud_name='demo',
        api_key='key',
        api_secret='secret',
    )


def test_local_upload_and_release(tmp_path):
    storage = LocalImageStorage(str(tmp_path))
    stored = storage.upload(png_bytes(), 'my photo.png', 'snapit/collections/Trips')
    assert stored.artifact_id.startswith('snapit/collections/Trips/')
    assert stored.artifact_id.endswith('_my_photo.png')
    assert stored.url == f'/media/{stored.artifact_id}'
    assert os.path.exists(os.path.join(str(tmp_path), stored.artifact_id))

    assert storage.release(stored.artifact_id) is True
    assert storage.release(stored.artifact_id) is False


def test_local_release_stays_inside_root(tmp_path):
    outside = tmp_path / 'outside.txt'
    outside.write_text('keep me')
    storage = LocalImageStorage(str(tmp_path / 'root'))
    assert storage.release('../outside.txt') is False
    assert outside.exists()


def test_read_image_accepts_real_images():
    assert read_image(png_file('a.png'), {'png'}) == png_bytes()


@pytest.mark.parametrize('upload', [
    FileStorage(stream=io.BytesIO(b'plain text'), filename='notes.png'),
    FileStorage(stream=io.BytesIO(png_bytes()), filename='noextension'),
    FileStorage(stream=io.BytesIO(png_bytes()), filename='image.svg'),
    FileStorage(stream=io.BytesIO(b''), filename=''),
])
def test_read_image_rejects_bad_uploads(upload):
    with pytest.raises(ValidationError):
        read_image(upload, {'png', 'jpg'})


def test_release_all_attempts_everything():
    storage = mock.Mock()
    storage.release.side_effect = [True, False, RuntimeError('boom'), True]
    failed = release_all(storage, ['a', 'b', 'c', 'd'])
    assert storage.release.call_count == 4
    assert failed == ['b', 'c']


def test_storage_settings_folders(settings):
    assert settings.avatar_folder == 'snapit/avatars'
    assert settings.collection_folder('Road Trip') == 'snapit/collections/Road_Trip'
    assert settings.collection_folder('../..') == 'snapit/collections/untitled'


def test_create_storage_picks_backend(settings, tmp_path):
    assert isinstance(create_storage(settings), CloudinaryImageStorage)
    local = StorageSettings(**{**settings.__dict__, 'backend': 'local'})
    assert isinstance(create_storage(local), LocalImageStorage)
    with pytest.raises(ValueError):
        create_storage(StorageSettings(**{**settings.__dict__, 'backend': 's3'}))


@mock.patch('snapit.storage.cloudinary.uploader')
def test_cloudinary_upload(uploader, settings):
    uploader.upload.return_value = {'public_id': 'snapit/abc', 'secure_url': 'https://res.cloudinary.com/abc.png'}
    stored = CloudinaryImageStorage(settings).upload(png_bytes(), 'a.png', 'snapit')
    assert stored.artifact_id == 'snapit/abc'
    assert stored.url == 'https://res.cloudinary.com/abc.png'
    _, kwargs = uploader.upload.call_args
    assert kwargs['folder'] == 'snapit'
    assert kwargs['timeout'] == 3


@mock.patch('snapit.storage.cloudinary.uploader')
def test_cloudinary_upload_failure_is_transient(uploader, settings):
    uploader.upload.side_effect = cloudinary.exceptions.Error('timed out')
    with pytest.raises(TransientError):
        CloudinaryImageStorage(settings).upload(png_bytes(), 'a.png', 'snapit')


@mock.patch('snapit.storage.cloudinary.uploader')
def test_cloudinary_release(uploader, settings):
    storage = CloudinaryImageStorage(settings)
    uploader.destroy.return_value = {'result': 'ok'}
    assert storage.release('snapit/abc') is True
    uploader.destroy.return_value = {'result': 'not found'}
    assert storage.release('snapit/abc') is False
    uploader.destroy.side_effect = cloudinary.exceptions.Error('down')
    assert storage.release('snapit/abc') is False
