# Request authorization for protected routes
import logging
from functools import wraps
from typing import Callable

import jwt as pyjwt
from flask import g, request
from flask_jwt_extended import get_current_user, verify_jwt_in_request
from flask_jwt_extended.exceptions import (
    JWTExtendedException,
    NoAuthorizationError,
    UserLookupError,
)

from . import db, jwt
from .errors import IdentityNotFound, TokenExpired, TokenInvalid, TokenMissing
from .models import User

logger = logging.getLogger(__name__)


@jwt.user_lookup_loader
def load_identity(_jwt_header, jwt_data):
    return db.session.get(User, jwt_data['sub'])


def authorize() -> User:
    """Resolve the request's session token to an identity or raise ``Unauthenticated``.

    The token is read from the ``token`` cookie, then the ``token`` JSON field,
    then an ``Authorization: Bearer`` header.
    """
    try:
        verify_jwt_in_request()
    except NoAuthorizationError:
        logger.debug(f'No session token on {request.method} {request.path}')
        raise TokenMissing()
    except pyjwt.ExpiredSignatureError:
        raise TokenExpired()
    except UserLookupError:
        logger.warning('Valid session token for an account that no longer exists')
        raise IdentityNotFound()
    except (pyjwt.InvalidTokenError, JWTExtendedException) as e:
        logger.warning(f'Invalid session token on {request.path}: {e}')
        raise TokenInvalid()
    g.identity = get_current_user()
    return g.identity


def current_identity() -> User:
    return g.identity


def login_required(view: Callable) -> Callable:
    @wraps(view)
    def wrapper(*args, **kwargs):
        authorize()
        return view(*args, **kwargs)
    return wrapper
