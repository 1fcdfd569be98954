from typing import Any, Dict, Optional


class ShopError(Exception):
    """Base class for failures that are rendered straight to the HTTP client."""

    status_code = 500
    message = "Internal error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message

    def to_content(self) -> Dict[str, Any]:
        return {"success": False, "errors": self.message}


# Signup / login

class DuplicateEmail(ShopError):
    status_code = 400
    message = "Existing user found with same email address"


class WrongEmail(ShopError):
    status_code = 400
    message = "Wrong Email Id"


class WrongPassword(ShopError):
    status_code = 400
    message = "Wrong Password"


# Session gate / cart

class Unauthenticated(ShopError):
    status_code = 401
    message = "Please authenticate using a valid token"

    def to_content(self) -> Dict[str, Any]:
        return {"errors": self.message}


class UserNotFound(ShopError):
    status_code = 404
    message = "User not found"

    def to_content(self) -> Dict[str, Any]:
        return {"errors": self.message}


# Store

class ProductPersistenceError(ShopError):
    status_code = 500
    message = "Error writing product to the database."

    def to_content(self) -> Dict[str, Any]:
        return {"success": False, "error": self.message}


class StoreUnavailable(ShopError):
    status_code = 503
    message = "Store unavailable"

    def to_content(self) -> Dict[str, Any]:
        return {"success": False, "error": self.message}


class InvalidToken(Exception):
    """Raised by the token service; the session gate turns it into Unauthenticated."""
