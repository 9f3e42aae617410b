"""Domain errors raised by the license service and rendered as JSON by the app."""


class LicenseServiceError(Exception):
    status_code = 400
    error = "license_error"

    def __init__(self, message: str = None, **extra):
        super().__init__(message or self.error)
        self.message = message or self.error
        self.extra = extra

    def payload(self) -> dict:
        body = {"success": False, "error": self.error, "message": self.message}
        body.update(self.extra)
        return body


class ValidationInput(LicenseServiceError):
    status_code = 400
    error = "invalid_input"


class NotFound(LicenseServiceError):
    status_code = 404
    error = "not_found"


class StatusRejection(LicenseServiceError):
    """The license exists but its status forbids use. Not an HTTP error."""

    status_code = 200

    def __init__(self, status: str):
        super().__init__(f"License is {status}", status=status)
        self.status = status
        self.error = status

    def payload(self) -> dict:
        return {"valid": False, "status": self.status, "error": self.error}


class EmailMismatch(LicenseServiceError):
    status_code = 403
    error = "email_mismatch"


class TrialAlreadyUsed(LicenseServiceError):
    status_code = 400
    error = "trial_already_used"

    def __init__(self, trial_date=None):
        from license_server.serializers import iso

        super().__init__("Trial already used for this email", trialDate=iso(trial_date))
        self.trial_date = trial_date


class InvalidTransition(LicenseServiceError):
    status_code = 400
    error = "invalid_transition"


class Unauthorized(LicenseServiceError):
    status_code = 401
    error = "unauthorized"


class PersistenceUnavailable(LicenseServiceError):
    status_code = 503
    error = "database_not_connected"

    def __init__(self, state: str):
        super().__init__("Database not connected", details=f"Current state: {state}")
        self.state = state
