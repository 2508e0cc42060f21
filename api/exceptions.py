# api/exceptions.py
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.views import exception_handler as drf_exception_handler


class SlotTaken(APIException):
    """The (barber, date, time) slot was claimed by another booking."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = "That time slot is no longer available. Please pick another slot."
    default_code = "slot_taken"


class TokenError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "This link cannot be used."
    default_code = "token_error"


class TokenNotFound(TokenError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "This link is not valid."
    default_code = "token_not_found"


class TokenExpired(TokenError):
    status_code = status.HTTP_410_GONE
    default_detail = "This link has expired."
    default_code = "token_expired"


class TokenMismatched(TokenError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "This link cannot be used for that action."
    default_code = "token_mismatched"


class TokenAlreadyUsed(TokenError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "This link has already been used."
    default_code = "token_already_used"


class InvalidTransition(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "This record is already finalized."
    default_code = "invalid_transition"


class NotAuthorized(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Only an administrator can perform this action."
    default_code = "not_authorized"


class DeliveryFailure(APIException):
    """Raised by a channel provider when a message could not be handed off."""
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "Notification delivery failed."
    default_code = "delivery_failure"


def exception_handler(exc, context):
    """DRF handler that adds the stable error code next to `detail`."""
    response = drf_exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, APIException) and isinstance(response.data, dict):
        codes = exc.get_codes()
        if isinstance(codes, str):
            response.data["code"] = codes
        elif "code" not in response.data:
            response.data["code"] = getattr(exc, "default_code", "error")
    return response
