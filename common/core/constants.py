from enum import Enum


class Environment(str, Enum):
    """Environment profiles."""

    LOCAL = "local"
    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


# Width of account_id columns; gateway ids longer than this are rejected
ACCOUNT_ID_MAX_LENGTH = 64
