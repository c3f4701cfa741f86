"""Domain errors raised by the equipment services.

The HTTP layer maps ``NotFound`` to 404 and the ``ValidationError``
subclasses to 400 using their ``code``.
"""

from django.core.exceptions import ObjectDoesNotExist, ValidationError


class NotFound(ObjectDoesNotExist):
    """The referenced asset or repair ticket does not exist."""

    code = "not_found"


class AssetBusy(ValidationError):
    """A repair ticket cannot be opened while the asset is in use."""

    def __init__(self, message="Asset is currently in use."):
        super().__init__(message, code="asset_in_use")


class OpenTicketExists(ValidationError):
    """The asset already has a repair ticket that is not completed."""

    def __init__(self, message="An open repair ticket already exists."):
        super().__init__(message, code="open_ticket_exists")


class InvalidTransition(ValidationError):
    """The requested repair ticket status change is not allowed."""

    def __init__(self, message):
        super().__init__(message, code="invalid_transition")
