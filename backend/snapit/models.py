# Database models (User, Post, Collection, etc.)
import uuid
from datetime import datetime, timezone
from . import db


def new_id():
    return uuid.uuid4().hex


def now_utc():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


# One row per edge: follower_id is in followed_id's followers and
# followed_id is in follower_id's following.
follows = db.Table(
    'follows',
    db.Column('follower_id', db.String(32), db.ForeignKey('users.id'), primary_key=True),
    db.Column('followed_id', db.String(32), db.ForeignKey('users.id'), primary_key=True),
    db.Column('created_at', db.DateTime, default=now_utc),
    db.CheckConstraint('follower_id != followed_id', name='no_self_follow'),
)

post_likes = db.Table(
    'post_likes',
    db.Column('post_id', db.String(32), db.ForeignKey('posts.id'), primary_key=True),
    db.Column('user_id', db.String(32), db.ForeignKey('users.id'), primary_key=True),
    db.Column('created_at', db.DateTime, default=now_utc),
)


class User(db.Model):
    __tablename__ = 'users'
    id = db.Column(db.String(32), primary_key=True, default=new_id)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    bio = db.Column(db.Text, nullable=False, default='')
    avatar_url = db.Column(db.String(512), nullable=True)
    avatar_artifact_id = db.Column(db.String(512), nullable=True)
    created_at = db.Column(db.DateTime, default=now_utc)
    updated_at = db.Column(db.DateTime, default=now_utc, onupdate=now_utc)

    # Edges are written through snapit.graph, never through these collections
    following = db.relationship(
        'User', secondary=follows,
        primaryjoin=(id == follows.c.follower_id),
        secondaryjoin=(id == follows.c.followed_id),
        order_by=follows.c.created_at,
        viewonly=True)
    followers = db.relationship(
        'User', secondary=follows,
        primaryjoin=(id == follows.c.followed_id),
        secondaryjoin=(id == follows.c.follower_id),
        order_by=follows.c.created_at,
        viewonly=True)
    posts = db.relationship('Post', back_populates='owner', order_by='Post.created_at')
    collections = db.relationship('Collection', back_populates='owner', order_by='Collection.created_at')

    def summary(self):
        return {'id': self.id, 'name': self.name, 'avatar': self.avatar_url}

    def to_dict(self):
        # password_hash is never part of any representation
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'bio': self.bio,
            'avatar': self.avatar_url,
            'followers': [u.id for u in self.followers],
            'following': [u.id for u in self.following],
            'followersCount': len(self.followers),
            'followingCount': len(self.following),
            'posts': [p.id for p in self.posts],
            'collections': [c.id for c in self.collections],
            'createdAt': _iso(self.created_at),
        }

    def __repr__(self):
        return f'<User {self.email}>'


class Post(db.Model):
    __tablename__ = 'posts'
    id = db.Column(db.String(32), primary_key=True, default=new_id)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    tags = db.Column(db.JSON, nullable=False, default=list)
    owner_id = db.Column(db.String(32), db.ForeignKey('users.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=now_utc)
    updated_at = db.Column(db.DateTime, default=now_utc, onupdate=now_utc)

    owner = db.relationship('User', back_populates='posts')
    images = db.relationship('PostImage', cascade='all, delete-orphan', order_by='PostImage.position')
    comments = db.relationship('Comment', back_populates='post', cascade='all, delete-orphan',
                               order_by='Comment.created_at')
    likers = db.relationship('User', secondary=post_likes, viewonly=True)

    def to_dict(self, detailed=False):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'tags': list(self.tags or []),
            'images': [img.to_dict() for img in self.images],
            'createdBy': self.owner.summary() if detailed else self.owner_id,
            'likes': [u.id for u in self.likers],
            'likesCount': len(self.likers),
            'comments': [c.to_dict(detailed) for c in self.comments],
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }

    def __repr__(self):
        return f'<Post {self.id} title={self.title!r}>'


class PostImage(db.Model):
    __tablename__ = 'post_images'
    id = db.Column(db.Integer, primary_key=True)
    post_id = db.Column(db.String(32), db.ForeignKey('posts.id'), nullable=False)
    artifact_id = db.Column(db.String(512), nullable=False)
    url = db.Column(db.String(1024), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self):
        return {'id': self.artifact_id, 'url': self.url}


class Comment(db.Model):
    __tablename__ = 'comments'
    id = db.Column(db.String(32), primary_key=True, default=new_id)
    post_id = db.Column(db.String(32), db.ForeignKey('posts.id'), nullable=False)
    author_id = db.Column(db.String(32), db.ForeignKey('users.id'), nullable=False)
    text = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=now_utc)

    post = db.relationship('Post', back_populates='comments')
    author = db.relationship('User')

    def to_dict(self, detailed=False):
        return {
            'id': self.id,
            'user': self.author.summary() if detailed else self.author_id,
            'text': self.text,
            'createdAt': _iso(self.created_at),
        }


class Collection(db.Model):
    __tablename__ = 'collections'
    id = db.Column(db.String(32), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    owner_id = db.Column(db.String(32), db.ForeignKey('users.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=now_utc)
    updated_at = db.Column(db.DateTime, default=now_utc, onupdate=now_utc)

    owner = db.relationship('User', back_populates='collections')
    # Embedded posts live and die with their collection
    posts = db.relationship('CollectionPost', back_populates='collection', cascade='all, delete-orphan',
                            order_by='CollectionPost.created_at')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'createdBy': self.owner_id,
            'posts': [p.to_dict() for p in self.posts],
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }

    def __repr__(self):
        return f'<Collection {self.id} name={self.name!r}>'


class CollectionPost(db.Model):
    __tablename__ = 'collection_posts'
    id = db.Column(db.String(32), primary_key=True, default=new_id)
    collection_id = db.Column(db.String(32), db.ForeignKey('collections.id'), nullable=False)
    created_by = db.Column(db.String(32), db.ForeignKey('users.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=now_utc)

    collection = db.relationship('Collection', back_populates='posts')
    images = db.relationship('CollectionImage', cascade='all, delete-orphan',
                             order_by='CollectionImage.position')

    def to_dict(self):
        return {
            'id': self.id,
            'images': [img.to_dict() for img in self.images],
            'createdBy': self.created_by,
            'createdAt': _iso(self.created_at),
        }


class CollectionImage(db.Model):
    __tablename__ = 'collection_images'
    id = db.Column(db.Integer, primary_key=True)
    collection_post_id = db.Column(db.String(32), db.ForeignKey('collection_posts.id'), nullable=False)
    artifact_id = db.Column(db.String(512), nullable=False)
    url = db.Column(db.String(1024), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self):
        return {'id': self.artifact_id, 'url': self.url}
