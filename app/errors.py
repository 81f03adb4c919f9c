# app/errors.py
from typing import Any, Dict, List, Optional


# -----------------------------------------------------------------------------
# Request-level errors (raised by the registration workflow)
# -----------------------------------------------------------------------------
class RegistrationError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        if message:
            self.message = message

    def to_body(self) -> Dict[str, Any]:
        return {"success": False, "message": self.message}


class ConfigurationMissing(RegistrationError):
    status_code = 500
    message = "Database configuration missing"


class ValidationFailed(RegistrationError):
    status_code = 400
    message = "Invalid input data"

    def __init__(self, issues: List[Dict[str, Any]]):
        super().__init__()
        self.issues = issues

    def to_body(self) -> Dict[str, Any]:
        body = super().to_body()
        body["details"] = self.issues
        return body


class EmailAlreadyRegistered(RegistrationError):
    status_code = 400
    message = "User with this email already exists"


# -----------------------------------------------------------------------------
# Storage-level errors (raised by app.crud, translated from SQLAlchemy)
# -----------------------------------------------------------------------------
class StorageError(Exception):
    pass


class StorageConnectionError(StorageError):
    pass


class DuplicateEmailError(StorageError):
    pass


class SchemaNotProvisionedError(StorageError):
    pass
