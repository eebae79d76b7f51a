import pytest
from sqlalchemy import func, select

from snapit import credentials, db
from snapit.errors import (
    Conflict,
    DuplicateIdentity,
    InvalidCredential,
    NotFound,
    ValidationError,
)
from snapit.models import User


def _user_count():
    return db.session.scalar(select(func.count()).select_from(User))


def test_register_stores_only_a_hash(ctx):
    user = credentials.register('Alice', 'a@x.com', 'Secret123', 'Secret123')
    assert user.id
    assert user.password_hash != 'Secret123'
    assert 'Secret123' not in user.password_hash
    assert user.bio == ''
    assert user.avatar_url.startswith('https://api.dicebear.com/')


def test_representation_has_no_password(ctx):
    user = credentials.register('Alice', 'a@x.com', 'Secret123', 'Secret123')
    data = user.to_dict()
    assert not any('password' in key.lower() for key in data)
    assert user.password_hash not in str(data)


def test_duplicate_email_is_a_conflict(ctx):
    credentials.register('Alice', 'a@x.com', 'Secret123', 'Secret123')
    with pytest.raises(DuplicateIdentity) as excinfo:
        credentials.register('Other Alice', 'a@x.com', 'Different1', 'Different1')
    assert isinstance(excinfo.value, Conflict)
    assert _user_count() == 1


def test_email_equality_is_case_sensitive(ctx):
    credentials.register('Alice', 'a@x.com', 'Secret123', 'Secret123')
    credentials.register('Alice', 'A@x.com', 'Secret123', 'Secret123')
    assert _user_count() == 2


@pytest.mark.parametrize('fields', [
    ('', 'a@x.com', 'Secret123', 'Secret123'),
    ('Alice', '', 'Secret123', 'Secret123'),
    ('Alice', 'a@x.com', '', ''),
    ('Alice', 'a@x.com', 'Secret123', None),
])
def test_register_requires_every_field(ctx, fields):
    with pytest.raises(ValidationError):
        credentials.register(*fields)
    assert _user_count() == 0


def test_register_rejects_mismatched_confirmation(ctx):
    with pytest.raises(ValidationError):
        credentials.register('Alice', 'a@x.com', 'Secret123', 'Secret124')
    assert _user_count() == 0


def test_verify_returns_identity(ctx):
    alice = credentials.register('Alice', 'a@x.com', 'Secret123', 'Secret123')
    assert credentials.verify('a@x.com', 'Secret123').id == alice.id


def test_verify_wrong_password(ctx):
    credentials.register('Alice', 'a@x.com', 'Secret123', 'Secret123')
    with pytest.raises(InvalidCredential):
        credentials.verify('a@x.com', 'wrong-password')


def test_verify_unknown_email(ctx):
    with pytest.raises(NotFound):
        credentials.verify('nobody@x.com', 'Secret123')


def test_change_password(ctx):
    alice = credentials.register('Alice', 'a@x.com', 'Secret123', 'Secret123')
    credentials.change_password(alice, 'Secret123', 'NewSecret456')
    assert credentials.verify('a@x.com', 'NewSecret456').id == alice.id
    with pytest.raises(InvalidCredential):
        credentials.verify('a@x.com', 'Secret123')


def test_change_password_needs_the_old_one(ctx):
    alice = credentials.register('Alice', 'a@x.com', 'Secret123', 'Secret123')
    before = alice.password_hash
    with pytest.raises(InvalidCredential):
        credentials.change_password(alice, 'not-it', 'NewSecret456')
    assert db.session.get(User, alice.id).password_hash == before


def test_update_profile_changes_only_given_fields(ctx):
    alice = credentials.register('Alice', 'a@x.com', 'Secret123', 'Secret123')
    credentials.update_profile(alice, bio='Photographer')
    reloaded = db.session.get(User, alice.id)
    assert reloaded.bio == 'Photographer'
    assert reloaded.name == 'Alice'
    assert reloaded.email == 'a@x.com'


def test_update_profile_cannot_take_someone_elses_email(ctx):
    alice = credentials.register('Alice', 'a@x.com', 'Secret123', 'Secret123')
    credentials.register('Bob', 'b@x.com', 'Secret123', 'Secret123')
    with pytest.raises(Conflict):
        credentials.update_profile(alice, email='b@x.com')
    assert db.session.get(User, alice.id).email == 'a@x.com'


def test_get_identity_not_found(ctx):
    with pytest.raises(NotFound):
        credentials.get_identity('missing')


@pytest.mark.parametrize('fields', [
    ('Alice', 'a@x.com', 12345678, 12345678),
    ('Alice', {'$ne': 1}, 'Secret123', 'Secret123'),
    (['Alice'], 'a@x.com', 'Secret123', 'Secret123'),
])
def test_register_rejects_non_string_fields(ctx, fields):
    with pytest.raises(ValidationError):
        credentials.register(*fields)
    assert _user_count() == 0


def test_verify_rejects_non_string_fields(ctx):
    credentials.register('Alice', 'a@x.com', 'Secret123', 'Secret123')
    with pytest.raises(ValidationError):
        credentials.verify({'$ne': 1}, 'Secret123')
    with pytest.raises(ValidationError):
        credentials.verify('a@x.com', 12345678)


def test_password_and_profile_changes_reject_non_strings(ctx):
    user = credentials.register('Alice', 'a@x.com', 'Secret123', 'Secret123')
    with pytest.raises(ValidationError):
        credentials.change_password(user, 'Secret123', 12345678)
    with pytest.raises(ValidationError):
        credentials.update_profile(user, email={'$ne': 1})
    with pytest.raises(ValidationError):
        credentials.update_profile(user, bio=5)
    assert credentials.verify('a@x.com', 'Secret123').id == user.id
    assert db.session.get(User, user.id).bio == ''
