# All API routes are in this one file
from flask import Blueprint, current_app, jsonify, request, send_from_directory

from . import credentials, graph, ownership, tokens
from .errors import InvalidCredential, NotFound, ValidationError, ensure_text
from .guard import current_identity, login_required
from .storage import LocalImageStorage, get_storage

users = Blueprint('users', __name__)
posts = Blueprint('posts', __name__)
collections = Blueprint('collections', __name__)
meta = Blueprint('meta', __name__)


def _json():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def _form_tags():
    tags = request.form.getlist('tags')
    return tags or request.form.get('tag')


# --- Users ---

@users.route('/register', methods=['POST'])
def register():
    current_app.logger.debug('POST /api/v1/user/register invoked')
    data = _json()
    user = credentials.register(
        data.get('name'), data.get('email'), data.get('password'), data.get('confirmPassword'))
    token = tokens.issue(user.id)
    response = jsonify({
        'success': True,
        'message': 'User registered successfully',
        'user': user.to_dict(),
        'token': token,
    })
    tokens.attach_cookie(response, token)
    return response, 201


@users.route('/login', methods=['POST'])
def login():
    current_app.logger.debug('POST /api/v1/user/login invoked')
    data = _json()
    if not data.get('email') or not data.get('password'):
        raise ValidationError('Please fill up all the required fields')
    try:
        user = credentials.verify(data['email'], data['password'])
    except (NotFound, InvalidCredential):
        # Same answer whether the email or the password was wrong
        raise InvalidCredential()
    token = tokens.issue(user.id)
    response = jsonify({
        'success': True,
        'message': 'User logged in successfully',
        'user': user.to_dict(),
        'token': token,
    })
    tokens.attach_cookie(response, token)
    return response, 200


@users.route('/logout', methods=['GET'])
@login_required
def logout():
    current_app.logger.debug('GET /api/v1/user/logout invoked')
    response = jsonify({'success': True, 'message': 'User logged out successfully'})
    tokens.clear_cookie(response)
    return response, 200


@users.route('/changePassword', methods=['PUT'])
@login_required
def change_password():
    current_app.logger.debug('PUT /api/v1/user/changePassword invoked')
    data = _json()
    credentials.change_password(current_identity(), data.get('oldPassword'), data.get('newPassword'))
    return jsonify({'success': True, 'message': 'Password changed successfully'}), 200


@users.route('/deleteAccount', methods=['DELETE'])
@login_required
def delete_account():
    current_app.logger.debug('DELETE /api/v1/user/deleteAccount invoked')
    credentials.delete_account(current_identity())
    response = jsonify({'success': True, 'message': 'Account deleted successfully'})
    tokens.clear_cookie(response)
    return response, 200


@users.route('/myProfile', methods=['GET'])
@login_required
def my_profile():
    current_app.logger.debug('GET /api/v1/user/myProfile invoked')
    return jsonify({'success': True, 'user': current_identity().to_dict()}), 200


@users.route('/<user_id>', methods=['GET'])
@login_required
def user_profile(user_id):
    current_app.logger.debug(f'GET /api/v1/user/{user_id} invoked')
    user = credentials.get_identity(user_id)
    return jsonify({
        'success': True,
        'user': user.to_dict(),
        'isFollowing': graph.is_following(current_identity().id, user.id),
    }), 200


@users.route('/follow/<user_id>', methods=['POST'])
@login_required
def follow_and_unfollow(user_id):
    current_app.logger.debug(f'POST /api/v1/user/follow/{user_id} invoked')
    state = graph.toggle_follow(current_identity().id, user_id)
    message = 'User followed' if state == graph.FOLLOWED else 'User Unfollowed'
    return jsonify({'success': True, 'message': message, 'status': state}), 200


@users.route('/updateProfile', methods=['PUT'])
@login_required
def update_profile():
    current_app.logger.debug('PUT /api/v1/user/updateProfile invoked')
    data = _json()
    user = credentials.update_profile(
        current_identity(),
        name=data.get('name'),
        email=data.get('email'),
        bio=data.get('bio'),
        avatar_url=data.get('profilePicture'),
    )
    return jsonify({'success': True, 'message': 'Profile updated successfully', 'user': user.to_dict()}), 200


@users.route('/followersAndFollowing/<user_id>', methods=['GET'])
@login_required
def followers_and_following(user_id):
    current_app.logger.debug(f'GET /api/v1/user/followersAndFollowing/{user_id} invoked')
    return jsonify({'success': True, **graph.followers_and_following(user_id)}), 200


@users.route('/posts/<user_id>', methods=['GET'])
@login_required
def user_posts(user_id):
    current_app.logger.debug(f'GET /api/v1/user/posts/{user_id} invoked')
    return jsonify({'success': True, 'posts': [p.to_dict() for p in ownership.list_user_posts(user_id)]}), 200


@users.route('/collections/<user_id>', methods=['GET'])
@login_required
def user_collections(user_id):
    current_app.logger.debug(f'GET /api/v1/user/collections/{user_id} invoked')
    found = ownership.list_user_collections(user_id)
    return jsonify({'success': True, 'collections': [c.to_dict() for c in found]}), 200


@users.route('/updateDisplayPicture', methods=['PUT'])
@login_required
def update_display_picture():
    current_app.logger.debug('PUT /api/v1/user/updateDisplayPicture invoked')
    if 'displayPicture' not in request.files:
        raise ValidationError('No display picture file provided')
    user = credentials.update_avatar(current_identity(), request.files['displayPicture'])
    return jsonify({
        'success': True,
        'message': 'Profile picture updated successfully',
        'profilePicture': user.avatar_url,
    }), 200


# --- Posts ---

@posts.route('/newPost', methods=['POST'])
@login_required
def create_post():
    current_app.logger.debug('POST /api/v1/posts/newPost invoked')
    post = ownership.create_post(
        current_identity(),
        request.form.get('title'),
        request.files.getlist('images'),
        description=request.form.get('description'),
        tags=_form_tags(),
    )
    return jsonify({'success': True, 'message': 'Post created successfully', 'post': post.to_dict()}), 201


@posts.route('/allPosts', methods=['GET'])
def all_posts():
    current_app.logger.debug('GET /api/v1/posts/allPosts invoked')
    return jsonify({'success': True, 'posts': [p.to_dict() for p in ownership.list_posts()]}), 200


@posts.route('/<post_id>', methods=['GET'])
@login_required
def get_post(post_id):
    current_app.logger.debug(f'GET /api/v1/posts/{post_id} invoked')
    post = ownership.get_post(post_id)
    return jsonify({'success': True, 'post': post.to_dict(detailed=True), 'likesCount': len(post.likers)}), 200


@posts.route('/update/<post_id>', methods=['PUT'])
@login_required
def update_post(post_id):
    current_app.logger.debug(f'PUT /api/v1/posts/update/{post_id} invoked')
    data = _json()
    post = ownership.update_post(
        current_identity().id, post_id,
        title=data.get('title'),
        description=data.get('description'),
        tags=data.get('tags', data.get('tag')),
    )
    return jsonify({'success': True, 'message': 'Post updated successfully', 'post': post.to_dict()}), 200


@posts.route('/<post_id>', methods=['DELETE'])
@login_required
def delete_post(post_id):
    current_app.logger.debug(f'DELETE /api/v1/posts/{post_id} invoked')
    ownership.delete_post(current_identity().id, post_id)
    return jsonify({'success': True, 'message': 'Post deleted successfully'}), 200


@posts.route('/<post_id>/comments', methods=['POST'])
@login_required
def add_comment(post_id):
    current_app.logger.debug(f'POST /api/v1/posts/{post_id}/comments invoked')
    ownership.add_comment(current_identity().id, post_id, _json().get('text'))
    post = ownership.get_post(post_id)
    return jsonify({'success': True, 'message': 'Comment added successfully', 'post': post.to_dict(detailed=True)}), 200


@posts.route('/<post_id>/reactions', methods=['POST'])
@login_required
def react_to_post(post_id):
    current_app.logger.debug(f'POST /api/v1/posts/{post_id}/reactions invoked')
    liked, likes_count = ownership.react_to_post(current_identity().id, post_id)
    return jsonify({
        'success': True,
        'message': 'Post liked successfully' if liked else 'Post unliked successfully',
        'liked': liked,
        'likesCount': likes_count,
    }), 200


@posts.route('/<post_id>/comments/<comment_id>', methods=['DELETE'])
@login_required
def delete_comment(post_id, comment_id):
    current_app.logger.debug(f'DELETE /api/v1/posts/{post_id}/comments/{comment_id} invoked')
    post = ownership.delete_comment(current_identity().id, post_id, comment_id)
    return jsonify({'success': True, 'message': 'Comment deleted successfully', 'post': post.to_dict()}), 200


# --- Collections ---

@collections.route('/createCollection', methods=['POST'])
@login_required
def create_collection():
    current_app.logger.debug('POST /api/v1/collection/createCollection invoked')
    data = _json()
    collection = ownership.create_collection(current_identity().id, data.get('name'), data.get('description'))
    return jsonify({
        'success': True,
        'message': 'Collection created successfully',
        'collection': collection.to_dict(),
    }), 201


@collections.route('/all-Collections', methods=['GET'])
@login_required
def my_collections():
    current_app.logger.debug('GET /api/v1/collection/all-Collections invoked')
    found = ownership.list_user_collections(current_identity().id)
    return jsonify({'success': True, 'collections': [c.to_dict() for c in found]}), 200


@collections.route('/<collection_id>/posts', methods=['POST'])
@login_required
def create_post_in_collection(collection_id):
    current_app.logger.debug(f'POST /api/v1/collection/{collection_id}/posts invoked')
    embedded = ownership.add_embedded_post(
        current_identity().id, collection_id, request.files.getlist('images'))
    return jsonify({
        'success': True,
        'message': 'Post created successfully in the collection',
        'post': embedded.to_dict(),
    }), 201


@collections.route('/delete-posts', methods=['DELETE'])
@login_required
def remove_post_from_collection():
    current_app.logger.debug('DELETE /api/v1/collection/delete-posts invoked')
    data = _json()
    ensure_text(data.get('collectionId'), 'collectionId')
    ensure_text(data.get('postId'), 'postId')
    if not data.get('collectionId') or not data.get('postId'):
        raise ValidationError('collectionId and postId are required')
    collection = ownership.remove_embedded_post(current_identity().id, data['collectionId'], data['postId'])
    return jsonify({
        'success': True,
        'message': 'Post and associated images removed successfully',
        'collection': collection.to_dict(),
    }), 200


@collections.route('/<collection_id>', methods=['DELETE'])
@login_required
def delete_collection(collection_id):
    current_app.logger.debug(f'DELETE /api/v1/collection/{collection_id} invoked')
    ownership.delete_collection(current_identity().id, collection_id)
    return jsonify({'success': True, 'message': 'Collection and associated images deleted successfully'}), 200


# --- Service ---

@meta.route('/api/v1/health', methods=['GET'])
def api_health():
    current_app.logger.debug('GET /api/v1/health invoked')
    return jsonify({'status': 'ok'}), 200


@meta.route('/media/<path:artifact_id>', methods=['GET'])
def media(artifact_id):
    current_app.logger.debug(f'GET /media/{artifact_id} invoked')
    storage = get_storage()
    if not isinstance(storage, LocalImageStorage):
        raise NotFound('File not found')
    return send_from_directory(storage.root, artifact_id)
