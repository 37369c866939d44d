from enum import Enum


class LinkStatus(str, Enum):
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    LIMIT_REACHED = "LIMIT_REACHED"
    REVOKED = "REVOKED"
    NOT_FOUND = "NOT_FOUND"
    # Link passed validation but lost the atomic consume
    LEDGER_CONFLICT = "LEDGER_CONFLICT"
