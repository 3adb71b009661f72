"""Domain errors raised by the service layer.

Each error carries the HTTP status it maps to, so routers can let them
propagate and the application handler renders them uniformly.
"""

from fastapi import status


class HuddleError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    detail: str = "Request could not be processed"

    def __init__(self, detail: str | None = None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class UnauthorizedError(HuddleError):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Not authenticated"


class ForbiddenError(HuddleError):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "Forbidden"


class NotFoundError(HuddleError):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Not found"


class PollNotFoundError(NotFoundError):
    detail = "Poll not found"


class ActivityNotFoundError(NotFoundError):
    detail = "Activity not found"


class ProfileNotFoundError(NotFoundError):
    detail = "Profile not found"


class NotificationNotFoundError(NotFoundError):
    detail = "Notification not found"


class ConflictError(HuddleError):
    status_code = status.HTTP_409_CONFLICT
    detail = "Conflict"


class AlreadyVotedError(ConflictError):
    detail = "Already voted"


class NoExistingVoteError(ConflictError):
    detail = "No existing vote"


class PollValidationError(HuddleError):
    detail = "Invalid poll data"


class PollClosedError(HuddleError):
    detail = "Poll is closed"


class InvalidOptionError(HuddleError):
    detail = "Option does not belong to this poll"


class RejectionReasonRequiredError(HuddleError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    detail = "A reason is required when rejecting an activity"


class ActivityStateError(HuddleError):
    detail = "Activity is not in a valid state for this operation"


class NotParticipantError(HuddleError):
    detail = "User has not accepted this activity"


class DataStoreError(HuddleError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    detail = "Data store request failed"

    def __init__(self, action: str, original: Exception):
        self.original = original
        super().__init__(f"Failed to {action}: {original}")
