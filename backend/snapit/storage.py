"""
Image storage backends.

Posts, collection posts and avatars keep only ``(artifact_id, url)`` pairs;
the bytes live behind an :class:`ImageStorage`. Two backends exist:

- :class:`LocalImageStorage` writes into ``UPLOAD_FOLDER`` and the app serves
  the files under ``/media/``. Used in development and tests.
- :class:`CloudinaryImageStorage` pushes to Cloudinary.

Uploading is strict (failures raise :class:`~snapit.errors.TransientError`);
releasing is best-effort and reports ``False`` instead of raising, so callers
can delete the owning record regardless.
"""

import io
import os
import uuid
import logging
from dataclasses import dataclass
from typing import Iterable, List, NamedTuple, Optional

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
from PIL import Image, UnidentifiedImageError
from flask import current_app
from werkzeug.utils import secure_filename

from .errors import TransientError, ValidationError

logger = logging.getLogger(__name__)


class StoredImage(NamedTuple):
    artifact_id: str
    url: str


@dataclass(frozen=True)
class StorageSettings:
    backend: str
    folder_name: str
    upload_folder: str
    timeout: float
    allowed_extensions: frozenset
    cloud_name: Optional[str] = None
    api_key: Optional[str] = None
    api_secret: Optional[str] = None

    @classmethod
    def from_config(cls, config) -> 'StorageSettings':
        return cls(
            backend=config['STORAGE_BACKEND'],
            folder_name=config['FOLDER_NAME'],
            upload_folder=config['UPLOAD_FOLDER'],
            timeout=config['STORAGE_TIMEOUT_SECONDS'],
            allowed_extensions=frozenset(config['ALLOWED_EXTENSIONS']),
            cloud_name=config.get('CLOUD_NAME'),
            api_key=config.get('API_KEY'),
            api_secret=config.get('API_SECRET'),
        )

    def collection_folder(self, collection_name: str) -> str:
        return f'{self.folder_name}/collections/{secure_filename(collection_name) or "untitled"}'

    @property
    def avatar_folder(self) -> str:
        return f'{self.folder_name}/avatars'


def allowed_file(filename, allowed_extensions):
    if '.' not in filename:
        return False
    ext = filename.rsplit('.', 1)[1].lower()
    return ext in allowed_extensions


def read_image(file, allowed_extensions) -> bytes:
    """Return the bytes of an uploaded image, rejecting anything Pillow cannot parse."""
    if not file or not file.filename:
        raise ValidationError('No selected file')
    if not allowed_file(file.filename, allowed_extensions):
        raise ValidationError(f'File type not allowed: {file.filename}')
    content = file.read()
    try:
        with Image.open(io.BytesIO(content)) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError):
        raise ValidationError(f'Not a valid image: {file.filename}')
    return content


class ImageStorage:
    def upload(self, content: bytes, filename: str, folder: str) -> StoredImage:
        raise NotImplementedError

    def release(self, artifact_id: str) -> bool:
        raise NotImplementedError


class LocalImageStorage(ImageStorage):
    def __init__(self, root: str, url_prefix: str = '/media'):
        self.root = os.path.abspath(root)
        self.url_prefix = url_prefix
        os.makedirs(self.root, exist_ok=True)

    def _path(self, artifact_id: str) -> str:
        path = os.path.abspath(os.path.join(self.root, artifact_id))
        if os.path.commonpath([path, self.root]) != self.root:
            raise ValidationError('Invalid artifact id')
        return path

    def upload(self, content: bytes, filename: str, folder: str) -> StoredImage:
        safe_folder = '/'.join(secure_filename(part) for part in folder.split('/') if part)
        artifact_id = f'{safe_folder}/{uuid.uuid4().hex}_{secure_filename(filename)}'
        path = self._path(artifact_id)
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, 'wb') as f:
                f.write(content)
        except OSError as e:
            logger.exception('Writing image to local storage failed')
            raise TransientError(f'Image upload failed: {e}')
        logger.debug(f'Stored image {artifact_id} ({len(content)} bytes)')
        return StoredImage(artifact_id, f'{self.url_prefix}/{artifact_id}')

    def release(self, artifact_id: str) -> bool:
        try:
            os.remove(self._path(artifact_id))
        except (OSError, ValidationError) as e:
            logger.warning(f'Could not release image {artifact_id}: {e}')
            return False
        logger.debug(f'Released image {artifact_id}')
        return True


class CloudinaryImageStorage(ImageStorage):
    def __init__(self, settings: StorageSettings):
        self.timeout = settings.timeout
        cloudinary.config(
            cloud_name=settings.cloud_name,
            api_key=settings.api_key,
            api_secret=settings.api_secret,
            secure=True,
        )

    def upload(self, content: bytes, filename: str, folder: str) -> StoredImage:
        try:
            result = cloudinary.uploader.upload(
                io.BytesIO(content), folder=folder, resource_type='image', timeout=self.timeout)
        except (cloudinary.exceptions.Error, OSError) as e:
            logger.exception(f'Cloudinary upload of {filename} failed')
            raise TransientError(f'Image upload failed: {e}')
        logger.debug(f'Uploaded {filename} to Cloudinary as {result["public_id"]}')
        return StoredImage(result['public_id'], result['secure_url'])

    def release(self, artifact_id: str) -> bool:
        try:
            result = cloudinary.uploader.destroy(artifact_id, invalidate=True, timeout=self.timeout)
        except (cloudinary.exceptions.Error, OSError) as e:
            logger.warning(f'Error deleting image {artifact_id} from Cloudinary: {e}')
            return False
        if result.get('result') != 'ok':
            logger.warning(f'Cloudinary refused to delete {artifact_id}: {result}')
            return False
        return True


def create_storage(settings: StorageSettings) -> ImageStorage:
    if settings.backend == 'cloudinary':
        return CloudinaryImageStorage(settings)
    if settings.backend == 'local':
        return LocalImageStorage(settings.upload_folder)
    raise ValueError(f'Unknown STORAGE_BACKEND {settings.backend!r}')


def get_storage() -> ImageStorage:
    return current_app.extensions['image_storage']


def get_storage_settings() -> StorageSettings:
    return current_app.extensions['storage_settings']


def release_all(storage: ImageStorage, artifact_ids: Iterable[str]) -> List[str]:
    """Try to release every artifact and return the ids that could not be released."""
    failed = []
    for artifact_id in artifact_ids:
        try:
            released = storage.release(artifact_id)
        except Exception:
            logger.exception(f'Unexpected error releasing image {artifact_id}')
            released = False
        if not released:
            failed.append(artifact_id)
    if failed:
        logger.warning(f'Best-effort cleanup left {len(failed)} image(s) behind: {failed}')
    return failed
