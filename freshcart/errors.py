# freshcart/errors.py
from typing import Optional


class FreshCartError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(FreshCartError):
    """Malformed input: bad product payload, bad form fields."""
    status_code = 400

    def __init__(self, message: str, errors: Optional[dict] = None):
        super().__init__(message)
        self.errors = errors or {}


class ConflictError(FreshCartError):
    status_code = 400


class AuthError(FreshCartError):
    # одно и то же сообщение для "нет такого email" и "неверный пароль"
    status_code = 401

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message)


class InternalError(FreshCartError):
    """Unexpected storage/runtime fault. `public_error` is the only detail sent to the client."""
    status_code = 500

    def __init__(self, message: str, public_error: str = "Internal server error"):
        super().__init__(message)
        self.public_error = public_error
