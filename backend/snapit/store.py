# Transaction helper around the Flask-SQLAlchemy session
import logging
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from . import db
from .errors import TransientError

logger = logging.getLogger(__name__)


@contextmanager
def transaction():
    """Commit the work done in the block, or roll all of it back.

    ``IntegrityError`` is re-raised for the caller to translate (duplicate
    email, duplicate follow edge); any other store failure becomes a
    :class:`TransientError`.
    """
    try:
        yield db.session
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception('Store operation failed, rolled back')
        raise TransientError() from e
    except Exception:
        db.session.rollback()
        raise


def get_or_404(model, entity_id, not_found):
    """Load ``model`` by primary key or raise ``not_found``."""
    try:
        entity = db.session.get(model, entity_id)
    except SQLAlchemyError as e:
        logger.exception(f'Loading {model.__name__} {entity_id} failed')
        raise TransientError() from e
    if entity is None:
        raise not_found
    return entity
