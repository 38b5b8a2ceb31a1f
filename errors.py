"""Error taxonomy shared by services and blueprints.

Every error carries the HTTP status it is rendered with, so services can
raise without knowing about Flask and the app-level handler turns them into
JSON responses.
"""


class ApiError(Exception):
    status_code = 500
    code = 'internal_error'

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_dict(self) -> dict:
        return {'error': self.code, 'message': self.message}


class ValidationError(ApiError):
    status_code = 400
    code = 'validation_error'

    def __init__(self, message: str | None = None, errors: list[str] | None = None):
        if errors and not message:
            message = '; '.join(errors)
        super().__init__(message)
        self.errors = errors or []

    def to_dict(self) -> dict:
        payload = super().to_dict()
        if self.errors:
            payload['errors'] = self.errors
        return payload


class AuthenticationRequired(ApiError):
    status_code = 401
    code = 'authentication_required'


class PermissionDenied(ApiError):
    status_code = 403
    code = 'permission_denied'


class NotFoundError(ApiError):
    status_code = 404
    code = 'not_found'


class ConflictError(ApiError):
    status_code = 409
    code = 'conflict'
