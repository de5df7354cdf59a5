from enum import Enum


class Provider(str, Enum):
    """Supported calendar providers."""

    GOOGLE = "google"
    MICROSOFT = "microsoft"


class ResponseStatus(str, Enum):
    """
    Meeting invitation response.

    UNKNOWN means no response was given or requested; submitting it to a
    provider is a no-op.
    """

    ACCEPTED = "accepted"
    DECLINED = "declined"
    TENTATIVE = "tentative"
    UNKNOWN = "unknown"


class AttendeeType(str, Enum):
    REQUIRED = "required"
    OPTIONAL = "optional"
    RESOURCE = "resource"


class EventVisibility(str, Enum):
    DEFAULT = "default"
    PUBLIC = "public"
    PRIVATE = "private"
    CONFIDENTIAL = "confidential"


class EventAvailability(str, Enum):
    BUSY = "busy"
    FREE = "free"
    TENTATIVE = "tentative"
    OUT_OF_OFFICE = "out_of_office"
