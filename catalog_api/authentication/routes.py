# catalog_api/authentication/routes.py
from flask import Blueprint, jsonify, request
from catalog_api.errors import CatalogError
from catalog_api.logging_config import setup_logging
from catalog_api.authentication.views import validate_registration, get_credential_manager


auth_bp = Blueprint('auth', __name__)

# Setup logging
logger = setup_logging()


@auth_bp.route('/register', methods=['POST'])
def register():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}

    try:
        identity = validate_registration(data)
        user_id = get_credential_manager().register(identity)
    except CatalogError as e:
        if e.status_code < 500:
            logger.warning(f"Registration rejected: {e.reason}")
        return jsonify({'message': e.message}), e.status_code

    return jsonify({'message': 'User registered successfully.', 'userId': user_id}), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    email = data.get('email')
    password = data.get('password')

    try:
        token = get_credential_manager().authenticate(email, password)
    except CatalogError as e:
        if e.status_code < 500:
            logger.warning(f"Failed login attempt: {e.reason}")
        return jsonify({'message': e.message}), e.status_code

    return jsonify({'message': 'Login successful.', 'token': token}), 200
