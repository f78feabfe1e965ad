"""
Error taxonomy shared by the stores, the admission controller and the relay.

Every error carries the HTTP status it maps to; ``pairchat.main`` installs a
single handler for ``ChatError`` so routers simply let these propagate.
"""

from fastapi import status


class ChatError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request failed"

    def __init__(self, detail: str = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(ChatError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid input"


class SelfConversation(ValidationError):
    default_detail = "Cannot start a conversation with yourself"


class EmptyBody(ValidationError):
    default_detail = "Message text must not be empty"


class AuthenticationError(ChatError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Could not validate credentials"


class Blocked(ChatError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "This user does not accept messages from you"


class NotAMember(ChatError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "No access to this chat"


class NotFound(ChatError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class InvalidTarget(NotFound):
    default_detail = "Recipient not found"


class AdmissionFailed(ChatError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Could not open the conversation, please retry"


class StoreError(ChatError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Internal server error"
