"""Enum definitions for application constants."""

from enum import Enum


class Role(str, Enum):
    """
    Staff and portal roles.

    - ADMIN: Superuser (bypasses every permission check)
    - BRANCH_MANAGER / MANAGER: Branch operations and staff
    - METHODIST / HEAD_TEACHER: Curriculum, textbooks, teachers
    - SALES_MANAGER / MARKETING_MANAGER / RECEPTIONIST: Client-facing work
    - ACCOUNTANT: Finances and pricing
    - TEACHER / STUDENT: Portal users
    """
    ADMIN = "admin"
    BRANCH_MANAGER = "branch_manager"
    METHODIST = "methodist"
    HEAD_TEACHER = "head_teacher"
    SALES_MANAGER = "sales_manager"
    MARKETING_MANAGER = "marketing_manager"
    MANAGER = "manager"
    ACCOUNTANT = "accountant"
    RECEPTIONIST = "receptionist"
    TEACHER = "teacher"
    STUDENT = "student"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_


# Roles that see the staff CRM rather than a portal
STAFF_ROLES = frozenset({
    Role.ADMIN,
    Role.BRANCH_MANAGER,
    Role.METHODIST,
    Role.HEAD_TEACHER,
    Role.SALES_MANAGER,
    Role.MARKETING_MANAGER,
    Role.MANAGER,
    Role.ACCOUNTANT,
    Role.RECEPTIONIST,
})


class InvitationStatus(str, Enum):
    """Stored lifecycle of a teacher invitation. EXPIRED is derived, never written."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class MatchReason(str, Enum):
    """Which contact field produced a teacher/profile match."""
    EMAIL = "email"
    PHONE = "phone"


class RelationshipType(str, Enum):
    """Guardian relationship on a family_members edge."""
    MAIN = "main"
    MOTHER = "mother"
    FATHER = "father"
    GUARDIAN = "guardian"
    OTHER = "other"


class AdminSection(str, Enum):
    """Admin UI sections gated by role."""
    FAQ = "faq"
    SCHEDULE = "schedule"
    PRICING = "pricing"
    MESSENGERS = "messengers"
    TELEPHONY = "telephony"
    TEXTBOOKS = "textbooks"
    REFERENCES = "references"
    AUDIT = "audit"
    ROLES = "roles"
    PERMISSIONS = "permissions"
    USER_BRANCHES = "user-branches"
    TEACHERS = "teachers"
    FAMILY_CLEANUP = "family-cleanup"
    FAMILY_MEMBERS = "family-members"
    FAMILY_SPLITTER = "family-splitter"
    FAMILY_RESTORER = "family-restorer"
    FAMILY_REORGANIZER = "family-reorganizer"
    SYSTEM_MONITOR = "system-monitor"

    @classmethod
    def has_value(cls, value: str) -> bool:
        return value in cls._value2member_map_


class TextbookCategory(str, Enum):
    """Textbook file categories."""
    GENERAL = "general"
    STUDENT_BOOK = "student_book"
    WORKBOOK = "workbook"
    TEACHER_BOOK = "teacher_book"
    AUDIO = "audio"
    VIDEO = "video"
