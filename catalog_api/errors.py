# catalog_api/errors.py
"""Failure types raised by the credential and catalog layers.

Every error carries a ``reason`` tag that callers can branch on, a
``message`` safe to return to the client, and the HTTP status the routes
answer with.
"""


class CatalogError(Exception):
    status_code = 500

    def __init__(self, reason, message, status_code=None):
        super().__init__(message)
        self.reason = reason
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {'message': self.message}


class ValidationError(CatalogError):
    status_code = 400

    INVALID_NAME = 'InvalidName'
    INVALID_EMAIL = 'InvalidEmail'
    INVALID_MOBILE = 'InvalidMobile'
    WEAK_PASSWORD = 'WeakPassword'
    MISSING_CREDENTIALS = 'MissingCredentials'
    INVALID_PRICE = 'InvalidPrice'
    INVALID_ATTRIBUTES = 'InvalidAttributes'
    MISSING_IMAGE = 'MissingImage'
    INVALID_IMAGE_TYPE = 'InvalidImageType'


class ConflictError(CatalogError):
    status_code = 400

    EMAIL_EXISTS = 'EmailExists'
    MOBILE_EXISTS = 'MobileExists'
    ATTRIBUTE_CONFLICT = 'AttributeConflict'


class AuthError(CatalogError):
    INVALID_CREDENTIALS = 'InvalidCredentials'
    MISSING_TOKEN = 'MissingToken'
    INVALID_TOKEN = 'InvalidToken'

    _STATUS_BY_REASON = {
        INVALID_CREDENTIALS: 400,
        MISSING_TOKEN: 401,
        INVALID_TOKEN: 403,
    }

    def __init__(self, reason, message):
        super().__init__(reason, message, self._STATUS_BY_REASON.get(reason, 401))


class UpstreamError(CatalogError):
    status_code = 500

    STORE_FAILURE = 'StoreFailure'

    def __init__(self, message='Internal server error.', cause=None):
        super().__init__(self.STORE_FAILURE, message)
        self.cause = cause
