# Posts, comments, likes and collections, and who may change them
import logging
from typing import List, Optional, Sequence, Tuple

from flask import current_app
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from . import db
from .errors import Forbidden, NotFound, ValidationError, ensure_text
from .models import (
    Collection,
    CollectionImage,
    CollectionPost,
    Comment,
    Post,
    PostImage,
    User,
    now_utc,
    post_likes,
)
from .storage import (
    StoredImage,
    get_storage,
    get_storage_settings,
    read_image,
    release_all,
)
from .store import get_or_404, transaction

logger = logging.getLogger(__name__)


def assert_owner(actor_id: str, entity) -> None:
    if entity.owner_id != actor_id:
        logger.warning(f'{actor_id} tried to modify {entity!r} owned by {entity.owner_id}')
        raise Forbidden()


def normalize_tags(tags) -> List[str]:
    if not tags:
        return []
    if isinstance(tags, str):
        tags = tags.split(',')
    elif not isinstance(tags, (list, tuple)):
        raise ValidationError('tags must be a string or a list')
    return [str(tag).strip() for tag in tags if str(tag).strip()]


def _store_images(files: Sequence, folder: str) -> List[StoredImage]:
    """Validate every upload, then store them; nothing is left behind on failure."""
    if not files:
        raise ValidationError('At least one image is required')
    limit = current_app.config['MAX_IMAGES_PER_POST']
    if len(files) > limit:
        raise ValidationError(f'At most {limit} images per post')
    settings = get_storage_settings()
    contents = [(f.filename, read_image(f, settings.allowed_extensions)) for f in files]

    storage = get_storage()
    stored = []
    try:
        for filename, content in contents:
            stored.append(storage.upload(content, filename, folder))
    except Exception:
        release_all(storage, [img.artifact_id for img in stored])
        raise
    return stored


def _save_with_images(entity, stored: List[StoredImage]):
    try:
        with transaction() as session:
            session.add(entity)
    except Exception:
        release_all(get_storage(), [img.artifact_id for img in stored])
        raise
    return entity


# --- Posts ---

def create_post(actor: User, title: str, files: Sequence, description: Optional[str] = None,
                tags=None) -> Post:
    ensure_text(title, 'title')
    ensure_text(description, 'description')
    if not title:
        raise ValidationError('Title is required')
    stored = _store_images(files, get_storage_settings().folder_name)
    post = Post(
        title=title,
        description=description,
        tags=normalize_tags(tags),
        owner_id=actor.id,
        images=[PostImage(artifact_id=img.artifact_id, url=img.url, position=i)
                for i, img in enumerate(stored)],
    )
    _save_with_images(post, stored)
    logger.info(f'{actor.id} created post {post.id} with {len(stored)} image(s)')
    return post


def list_posts() -> List[Post]:
    return db.session.scalars(select(Post).order_by(Post.created_at.desc())).all()


def list_user_posts(user_id: str) -> List[Post]:
    return db.session.scalars(
        select(Post).where(Post.owner_id == user_id).order_by(Post.created_at)).all()


def get_post(post_id: str) -> Post:
    return get_or_404(Post, post_id, NotFound('Post not found'))


def update_post(actor_id: str, post_id: str, title=None, description=None, tags=None) -> Post:
    ensure_text(title, 'title')
    ensure_text(description, 'description')
    post = get_post(post_id)
    assert_owner(actor_id, post)
    with transaction():
        if title:
            post.title = title
        if description is not None:
            post.description = description
        if tags is not None:
            post.tags = normalize_tags(tags)
    return post


def delete_post(actor_id: str, post_id: str) -> List[str]:
    """Delete a post and return the artifact ids whose release failed."""
    post = get_post(post_id)
    assert_owner(actor_id, post)
    failed = release_all(get_storage(), [img.artifact_id for img in post.images])
    with transaction() as session:
        _delete_post_rows(session, post)
    logger.info(f'{actor_id} deleted post {post_id}')
    return failed


def _delete_post_rows(session, post: Post):
    session.execute(post_likes.delete().where(post_likes.c.post_id == post.id))
    session.delete(post)


def _likes_count(post_id: str) -> int:
    return db.session.scalar(
        select(func.count()).select_from(post_likes).where(post_likes.c.post_id == post_id))


def react_to_post(actor_id: str, post_id: str) -> Tuple[bool, int]:
    """Toggle the actor's like on a post; returns ``(liked, likes_count)``."""
    get_post(post_id)
    like = (post_likes.c.post_id == post_id) & (post_likes.c.user_id == actor_id)
    try:
        with transaction() as session:
            liked = not session.execute(post_likes.delete().where(like)).rowcount
            if liked:
                session.execute(post_likes.insert().values(
                    post_id=post_id, user_id=actor_id, created_at=now_utc()))
    except IntegrityError:
        # Only a duplicate like means the post is liked; otherwise the post is gone
        if db.session.scalar(select(post_likes.c.post_id).where(like)) is None:
            raise NotFound('Post not found')
        liked = True
    return liked, _likes_count(post_id)


def add_comment(actor_id: str, post_id: str, text: Optional[str]) -> Comment:
    ensure_text(text, 'text')
    if not text or not text.strip():
        raise ValidationError('Comment text is required')
    post = get_post(post_id)
    comment = Comment(post_id=post.id, author_id=actor_id, text=text.strip())
    with transaction() as session:
        session.add(comment)
    return comment


def delete_comment(actor_id: str, post_id: str, comment_id: str) -> Post:
    """Remove a comment; allowed to its author and to the post's owner."""
    post = get_post(post_id)
    comment = db.session.get(Comment, comment_id)
    if comment is None or comment.post_id != post.id:
        raise NotFound('Comment not found')
    if actor_id not in (comment.author_id, post.owner_id):
        logger.warning(f'{actor_id} tried to delete comment {comment_id} on post {post_id}')
        raise Forbidden()
    with transaction() as session:
        session.delete(comment)
    return post


# --- Collections ---

def create_collection(actor_id: str, name: Optional[str], description: Optional[str] = None) -> Collection:
    ensure_text(name, 'name')
    ensure_text(description, 'description')
    if not name:
        raise ValidationError('Collection name is required')
    collection = Collection(name=name, description=description, owner_id=actor_id)
    with transaction() as session:
        session.add(collection)
    return collection


def get_collection(collection_id: str) -> Collection:
    return get_or_404(Collection, collection_id, NotFound('Collection not found'))


def list_user_collections(user_id: str) -> List[Collection]:
    return db.session.scalars(
        select(Collection).where(Collection.owner_id == user_id).order_by(Collection.created_at)).all()


def add_embedded_post(actor_id: str, collection_id: str, files: Sequence) -> CollectionPost:
    collection = get_collection(collection_id)
    assert_owner(actor_id, collection)
    stored = _store_images(files, get_storage_settings().collection_folder(collection.name))
    embedded = CollectionPost(
        collection_id=collection.id,
        created_by=actor_id,
        images=[CollectionImage(artifact_id=img.artifact_id, url=img.url, position=i)
                for i, img in enumerate(stored)],
    )
    _save_with_images(embedded, stored)
    return embedded


def remove_embedded_post(actor_id: str, collection_id: str, embedded_post_id: str) -> Collection:
    collection = get_collection(collection_id)
    assert_owner(actor_id, collection)
    embedded = next((p for p in collection.posts if p.id == embedded_post_id), None)
    if embedded is None:
        raise NotFound('Post not found in the collection')
    release_all(get_storage(), [img.artifact_id for img in embedded.images])
    with transaction():
        collection.posts.remove(embedded)
    return collection


def delete_collection(actor_id: str, collection_id: str) -> List[str]:
    """Delete a collection and return the artifact ids whose release failed."""
    collection = get_collection(collection_id)
    assert_owner(actor_id, collection)
    failed = release_all(get_storage(), _collection_artifacts(collection))
    with transaction() as session:
        session.delete(collection)
    logger.info(f'{actor_id} deleted collection {collection_id}')
    return failed


def _collection_artifacts(collection: Collection) -> List[str]:
    return [img.artifact_id for post in collection.posts for img in post.images]


# --- Account deletion support ---

def owned_artifacts(user: User) -> List[str]:
    artifacts = [img.artifact_id for post in user.posts for img in post.images]
    for collection in user.collections:
        artifacts.extend(_collection_artifacts(collection))
    return artifacts


def delete_owned_content(session, user: User) -> None:
    """Stage deletion of every post and collection owned by ``user``."""
    for post in list(user.posts):
        _delete_post_rows(session, post)
    for collection in list(user.collections):
        session.delete(collection)
    session.flush()
