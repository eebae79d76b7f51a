# Session tokens: signed JWTs naming the identity, nothing stored server side
import logging
from datetime import timedelta
from typing import Optional

import jwt
from flask_jwt_extended import (
    create_access_token,
    decode_token,
    set_access_cookies,
    unset_jwt_cookies,
)
from flask_jwt_extended.exceptions import JWTExtendedException

from .errors import TokenExpired, TokenInvalid, TokenMissing

logger = logging.getLogger(__name__)


def issue(identity_id: str, expires_delta: Optional[timedelta] = None) -> str:
    if expires_delta is None:
        token = create_access_token(identity=identity_id)
    else:
        token = create_access_token(identity=identity_id, expires_delta=expires_delta)
    logger.debug(f'Issued session token for {identity_id}')
    return token


def verify(token: Optional[str]) -> str:
    """Return the identity id embedded in ``token``."""
    if not token:
        raise TokenMissing()
    try:
        claims = decode_token(token)
    except jwt.ExpiredSignatureError:
        raise TokenExpired()
    except (jwt.InvalidTokenError, JWTExtendedException) as e:
        logger.debug(f'Rejected session token: {e}')
        raise TokenInvalid()
    return claims['sub']


def attach_cookie(response, token: str):
    set_access_cookies(response, token)
    return response


def clear_cookie(response):
    unset_jwt_cookies(response)
    return response
