# medcrm/errors.py


class ActionError(Exception):
    """Base class for failures an action reports back to its caller.

    Only the message crosses the action boundary; the subclass exists so the
    code raising it reads clearly and so logs can tell the kinds apart.
    """

    default_message = "Request failed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(ActionError):
    default_message = "Unauthorized"


class NotFound(ActionError):
    default_message = "Not found"


class Forbidden(ActionError):
    default_message = "Access denied"


class Conflict(ActionError):
    default_message = "Conflict"


class InvalidTransition(ActionError):
    default_message = "Invalid status transition"


class ValidationFailed(ActionError):
    default_message = "Invalid request"
