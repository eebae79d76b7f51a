# Identity records: registration, password checks, profile changes
import logging
from typing import Optional
from urllib.parse import quote

from flask import current_app
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError

from . import db
from .errors import (
    Conflict,
    DuplicateIdentity,
    InvalidCredential,
    NotFound,
    ValidationError,
    ensure_text,
)
from .models import Comment, User, follows, post_likes
from .ownership import delete_owned_content, owned_artifacts
from .security import burn_password_check, hash_password, verify_password
from .storage import get_storage, get_storage_settings, read_image, release_all
from .store import get_or_404, transaction

logger = logging.getLogger(__name__)

DEFAULT_AVATAR = 'https://api.dicebear.com/5.x/initials/svg?seed={}'


def _iterations() -> int:
    return current_app.config['PASSWORD_HASH_ITERATIONS']


def find_by_email(email: str) -> Optional[User]:
    return db.session.scalar(select(User).where(User.email == email))


def register(name: str, email: str, password: str, confirm_password: str) -> User:
    for field, value in (('name', name), ('email', email), ('password', password),
                         ('confirmPassword', confirm_password)):
        ensure_text(value, field)
    if not name or not email or not password or not confirm_password:
        raise ValidationError('All fields are required')
    if password != confirm_password:
        raise ValidationError('Password and confirm password do not match. Please try again.')
    if find_by_email(email) is not None:
        raise DuplicateIdentity()

    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password, _iterations()),
        bio='',
        avatar_url=DEFAULT_AVATAR.format(quote(name)),
    )
    try:
        with transaction() as session:
            session.add(user)
    except IntegrityError:
        # Lost a race with another registration for the same email
        raise DuplicateIdentity()
    logger.info(f'Registered user {user.id}')
    return user


def verify(email: str, password: str) -> User:
    ensure_text(email, 'email')
    ensure_text(password, 'password')
    user = find_by_email(email) if email else None
    if user is None:
        burn_password_check(password or '', _iterations())
        raise NotFound('User is not registered with us. Please sign up to continue')
    if not verify_password(password or '', user.password_hash):
        logger.info(f'Wrong password for user {user.id}')
        raise InvalidCredential()
    return user


def change_password(identity: User, old_password: str, new_password: str) -> None:
    ensure_text(old_password, 'oldPassword')
    ensure_text(new_password, 'newPassword')
    if not new_password:
        raise ValidationError('New password is required')
    if not verify_password(old_password or '', identity.password_hash):
        raise InvalidCredential('Old password is incorrect')
    with transaction():
        identity.password_hash = hash_password(new_password, _iterations())
    logger.info(f'Password changed for user {identity.id}')


def get_identity(identity_id: str) -> User:
    return get_or_404(User, identity_id, NotFound('User not found'))


def update_profile(identity: User, name=None, email=None, bio=None, avatar_url=None) -> User:
    for field, value in (('name', name), ('email', email), ('bio', bio), ('profilePicture', avatar_url)):
        ensure_text(value, field)
    if email and email != identity.email and find_by_email(email) is not None:
        raise Conflict('Email is already in use')
    try:
        with transaction():
            if name:
                identity.name = name
            if email:
                identity.email = email
            if bio is not None:
                identity.bio = bio
            if avatar_url:
                identity.avatar_url = avatar_url
                identity.avatar_artifact_id = None
    except IntegrityError:
        raise Conflict('Email is already in use')
    return identity


def update_avatar(identity: User, file) -> User:
    settings = get_storage_settings()
    content = read_image(file, settings.allowed_extensions)
    storage = get_storage()
    stored = storage.upload(content, file.filename, settings.avatar_folder)
    previous = identity.avatar_artifact_id
    try:
        with transaction():
            identity.avatar_url = stored.url
            identity.avatar_artifact_id = stored.artifact_id
    except Exception:
        release_all(storage, [stored.artifact_id])
        raise
    if previous:
        release_all(storage, [previous])
    return identity


def delete_account(identity: User) -> None:
    """Remove the identity with everything it owns or authored.

    Owned posts and collections go through the same best-effort image release
    as their individual deletions; comments, likes and follow edges in both
    directions are removed with the account.
    """
    user_id = identity.id
    artifacts = owned_artifacts(identity)
    if identity.avatar_artifact_id:
        artifacts.append(identity.avatar_artifact_id)
    release_all(get_storage(), artifacts)

    with transaction() as session:
        delete_owned_content(session, identity)
        session.execute(Comment.__table__.delete().where(Comment.__table__.c.author_id == user_id))
        session.execute(post_likes.delete().where(post_likes.c.user_id == user_id))
        session.execute(follows.delete().where(
            or_(follows.c.follower_id == user_id, follows.c.followed_id == user_id)))
        session.execute(User.__table__.delete().where(User.__table__.c.id == user_id))
    logger.info(f'Deleted account {user_id}')
