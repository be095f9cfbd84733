"""Actor roles supplied by the authorization provider."""

from enum import Enum


class UserRole(str, Enum):
    """Workflow roles. ADMIN manages configuration only and has no workflow bypass."""

    STUDENT = "STUDENT"
    PROGRAM_HEAD = "PROGRAM_HEAD"
    PROGRAM_CURRICULUM_COMMITTEE = "PROGRAM_CURRICULUM_COMMITTEE"
    PROJECT_DIRECTOR = "PROJECT_DIRECTOR"
    EXAMINER = "EXAMINER"
    ADMIN = "ADMIN"
