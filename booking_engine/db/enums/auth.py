"""User role enums."""

from enum import Enum


class Role(str, Enum):
    """
    Firm user roles.

    - ADMIN: manages firm settings and any lawyer's calendar
    - LAWYER: owns a bookable calendar
    - STAFF: books on behalf of lawyers
    - CLIENT: external party an appointment is booked for
    """
    ADMIN = "admin"
    LAWYER = "lawyer"
    STAFF = "staff"
    CLIENT = "client"


# Roles that own a bookable calendar
BOOKABLE_ROLES = (Role.LAWYER.value, Role.ADMIN.value)
