import enum


class Role(str, enum.Enum):
    FARMER = "FARMER"
    BUYER = "BUYER"
    ADMIN = "ADMIN"


# East African countries served by the marketplace
class Country(str, enum.Enum):
    KENYA = "KENYA"
    UGANDA = "UGANDA"
    TANZANIA = "TANZANIA"


class VerificationStatus(str, enum.Enum):
    NOT_VERIFIED = "NOT_VERIFIED"
    VERIFIED = "VERIFIED"


# Audit log actions
class EventAction(str, enum.Enum):
    USER_LOGIN = "USER_LOGIN"
    USER_REGISTERED = "USER_REGISTERED"
    PROFILE_UPDATED = "PROFILE_UPDATED"
    PASSWORD_RESET_REQUESTED = "PASSWORD_RESET_REQUESTED"
    PASSWORD_RESET = "PASSWORD_RESET"
    FEEDBACK_SUBMITTED = "FEEDBACK_SUBMITTED"
    RATING_SUBMITTED = "RATING_SUBMITTED"
    REQUEST = "REQUEST"


PASSWORD_RESET_MESSAGE = "If an account with that email exists, a password reset email has been sent."
