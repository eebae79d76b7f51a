# Follow / unfollow between identities
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from . import db
from .errors import InvalidOperation, NotFound
from .models import User, follows, now_utc
from .store import get_or_404, transaction

logger = logging.getLogger(__name__)

FOLLOWED = 'followed'
UNFOLLOWED = 'unfollowed'


def toggle_follow(actor_id: str, target_id: str) -> str:
    """Flip the follow edge from ``actor_id`` to ``target_id``.

    The current membership decides the verb: an existing edge is removed
    (unfollow), a missing one is created (follow). Both sides of the relation
    are the same ``follows`` row, so they change together in one statement.
    """
    if actor_id == target_id:
        raise InvalidOperation("You can't follow yourself")
    get_or_404(User, target_id, NotFound('No user with this id'))

    edge = (follows.c.follower_id == actor_id) & (follows.c.followed_id == target_id)
    try:
        with transaction() as session:
            removed = session.execute(follows.delete().where(edge)).rowcount
            if removed:
                state = UNFOLLOWED
            else:
                session.execute(follows.insert().values(
                    follower_id=actor_id, followed_id=target_id, created_at=now_utc()))
                state = FOLLOWED
    except IntegrityError:
        if not _edge_exists(edge):
            # Foreign key failure: one side was deleted after the lookup
            logger.info(f'Follow {actor_id} -> {target_id} lost its target')
            raise NotFound('No user with this id')
        # A concurrent request inserted the same edge first
        logger.info(f'Follow {actor_id} -> {target_id} raced with another request')
        state = FOLLOWED
    logger.debug(f'{actor_id} {state} {target_id}')
    return state


def _edge_exists(edge) -> bool:
    return db.session.scalar(select(follows.c.follower_id).where(edge)) is not None


def is_following(actor_id: str, target_id: str) -> bool:
    target = get_or_404(User, target_id, NotFound('User not found'))
    return any(u.id == actor_id for u in target.followers)


def followers_and_following(identity_id: str) -> dict:
    user = get_or_404(User, identity_id, NotFound('User not found'))
    return {
        'followers': [u.summary() for u in user.followers],
        'following': [u.summary() for u in user.following],
    }
