# foodrescue/errors.py
"""Typed failures raised by the services.

Every error carries an HTTP status and a generic message that is safe to show
to users; the specific kind and detail only go to the log.
"""


class FoodRescueError(Exception):
    status_code = 500
    public_message = "Something went wrong"

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.public_message)
        self.detail = detail or self.public_message

    @property
    def kind(self) -> str:
        return type(self).__name__


class StoreUnavailable(FoodRescueError):
    status_code = 503
    public_message = "Storage is currently unavailable"


class NotFound(FoodRescueError):
    status_code = 404
    public_message = "Not found"


class ValidationError(FoodRescueError):
    status_code = 400
    public_message = "Invalid request"


class InsufficientBalance(FoodRescueError):
    status_code = 400
    public_message = "Insufficient points"


class AlreadyClaimed(FoodRescueError):
    status_code = 409
    public_message = "Task is no longer available"


class Forbidden(FoodRescueError):
    status_code = 403
    public_message = "You are not allowed to do that"


class InvalidState(FoodRescueError):
    status_code = 409
    public_message = "Task cannot be updated in its current state"


class VerificationRejected(FoodRescueError):
    status_code = 502
    public_message = "Failed to verify food"


class VerificationTimeout(FoodRescueError):
    status_code = 504
    public_message = "Food verification timed out"


class MalformedVerificationResponse(FoodRescueError):
    status_code = 502
    public_message = "Failed to verify food"


class LocationUnavailable(FoodRescueError):
    status_code = 502
    public_message = "Failed to get location"
