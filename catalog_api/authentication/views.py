# catalog_api/authentication/views.py
import re
import hmac
import hashlib
from collections import namedtuple
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from catalog_api.init_db import db
from catalog_api.authentication.models import User
from catalog_api.errors import AuthError, ConflictError, UpstreamError, ValidationError
from catalog_api.logging_config import setup_logging

logger = setup_logging()

EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
MOBILE_RE = re.compile(r'^\d+$')
PASSWORD_RE = re.compile(r'^(?=.*[a-z])(?=.*[A-Z])(?=.*\d).{8,}$')

TOKEN_ALGORITHM = 'HS256'

ValidatedIdentity = namedtuple('ValidatedIdentity', ['name', 'email', 'mobile', 'password'])


def is_valid_password(password):
    return isinstance(password, str) and PASSWORD_RE.match(password) is not None


def is_valid_email(email):
    return isinstance(email, str) and EMAIL_RE.match(email) is not None


def is_valid_mobile(mobile):
    return isinstance(mobile, str) and MOBILE_RE.match(mobile) is not None


def validate_registration(data):
    """Check a registration body and return a ValidatedIdentity.

    Fields are checked in the order name, email, mobile, password and the
    first failure is raised as a ValidationError.
    """
    name = data.get('name')
    email = data.get('email')
    mobile = data.get('mobile')
    password = data.get('password')

    if not name or not isinstance(name, str):
        raise ValidationError(ValidationError.INVALID_NAME, 'Name is required and must be a string.')

    if not email or not is_valid_email(email):
        raise ValidationError(ValidationError.INVALID_EMAIL, 'A valid email is required.')

    if not mobile or not is_valid_mobile(mobile):
        raise ValidationError(ValidationError.INVALID_MOBILE, 'Mobile number must be integers only.')

    if not password or not is_valid_password(password):
        raise ValidationError(
            ValidationError.WEAK_PASSWORD,
            'Password must be at least 8 characters long, including one uppercase letter, '
            'one lowercase letter, and one digit.',
        )

    return ValidatedIdentity(name=name, email=email, mobile=mobile, password=password)


def extract_bearer_token(header):
    if not header:
        return None
    parts = header.split(' ')
    if len(parts) < 2 or not parts[1]:
        return None
    return parts[1]


class CredentialManager:
    """Password hashing, credential checks and bearer tokens.

    The secret both peppers passwords before bcrypt and signs tokens.
    """

    def __init__(self, secret_key, rounds=10, token_ttl=timedelta(hours=4)):
        if not secret_key:
            raise ValueError('A secret key is required.')
        self.secret_key = secret_key
        self.rounds = rounds
        self.token_ttl = token_ttl

    def _pepper(self, password):
        return hmac.new(
            self.secret_key.encode('utf-8'), password.encode('utf-8'), hashlib.sha256
        ).hexdigest().encode('ascii')

    def hash_password(self, password):
        return bcrypt.hashpw(self._pepper(password), bcrypt.gensalt(rounds=self.rounds)).decode('ascii')

    def check_password(self, password, hashed):
        try:
            return bcrypt.checkpw(self._pepper(password), hashed.encode('ascii'))
        except ValueError:
            # stored value is not a bcrypt hash
            return False

    def register(self, identity):
        try:
            if User.query.filter_by(email=identity.email).first():
                raise ConflictError(ConflictError.EMAIL_EXISTS, 'Email already exists.')

            if User.query.filter_by(mobile=identity.mobile).first():
                raise ConflictError(ConflictError.MOBILE_EXISTS, 'Mobile Number already exists.')

            user = User(
                name=identity.name,
                email=identity.email,
                mobile=identity.mobile,
                password=self.hash_password(identity.password),
            )
            db.session.add(user)
            db.session.commit()
        except IntegrityError:
            # Lost a race against a concurrent registration.
            db.session.rollback()
            raise self._conflict_for(identity)
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Database error during registration: {e}")
            raise UpstreamError(cause=e)

        logger.info(f"New user {user.id} registered successfully.")
        return user.id

    def _conflict_for(self, identity):
        if User.query.filter_by(email=identity.email).first():
            return ConflictError(ConflictError.EMAIL_EXISTS, 'Email already exists.')
        return ConflictError(ConflictError.MOBILE_EXISTS, 'Mobile Number already exists.')

    def authenticate(self, email, password):
        if not email or not password or not isinstance(password, str):
            raise ValidationError(ValidationError.MISSING_CREDENTIALS, 'Email and password are required.')

        if not is_valid_email(email):
            raise ValidationError(ValidationError.INVALID_EMAIL, 'A valid email is required.')

        try:
            user = User.query.filter_by(email=email).first()
        except SQLAlchemyError as e:
            logger.error(f"Database error during login: {e}")
            raise UpstreamError(cause=e)

        if not user or not self.check_password(password, user.password):
            raise AuthError(AuthError.INVALID_CREDENTIALS, 'Invalid email or password.')

        logger.info(f"User {user.id} logged in successfully.")
        return self.issue_token(user.id)

    def issue_token(self, user_id, issued_at=None):
        issued_at = issued_at or datetime.now(timezone.utc)
        payload = {
            'id': user_id,
            'sub': str(user_id),
            'iat': issued_at,
            'exp': issued_at + self.token_ttl,
        }
        return jwt.encode(payload, self.secret_key, algorithm=TOKEN_ALGORITHM)

    def verify_token(self, token):
        if not token:
            raise AuthError(AuthError.MISSING_TOKEN, 'Access denied. No token provided.')

        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[TOKEN_ALGORITHM])
            return int(payload['sub'])
        except (jwt.InvalidTokenError, KeyError, ValueError):
            raise AuthError(AuthError.INVALID_TOKEN, 'Invalid or expired token.')


def get_credential_manager():
    return current_app.extensions['credential_manager']
