"""Static access policy: which sections each role may open.

This module is data only. The rules that combine it with a SessionIdentity
(tenant gating, the system-admin exclusion) live in evaluator.py.
"""

from enum import StrEnum

from edufam_shared.auth_models import Role


class Section(StrEnum):
    DASHBOARD = "dashboard"
    PROFILE = "profile"
    ANALYTICS = "analytics"
    GRADES = "grades"
    ATTENDANCE = "attendance"
    STUDENTS = "students"
    FINANCE = "finance"
    TIMETABLE = "timetable"
    ANNOUNCEMENTS = "announcements"
    MESSAGES = "messages"
    REPORTS = "reports"
    SUPPORT = "support"
    USERS = "users"
    SETTINGS = "settings"
    CERTIFICATES = "certificates"
    SCHOOL_MANAGEMENT = "school-management"


# Landing page: open to any signed-in identity, whatever its role.
UNIVERSAL_SECTIONS: frozenset[Section] = frozenset({Section.DASHBOARD})

# A person's own profile is not school data.
NON_TENANT_SECTIONS: frozenset[Section] = frozenset({Section.DASHBOARD, Section.PROFILE})

TENANT_SECTIONS: frozenset[Section] = frozenset(Section) - NON_TENANT_SECTIONS

ROLE_SECTIONS: dict[Role, frozenset[Section]] = {
    Role.SCHOOL_DIRECTOR: frozenset({
        Section.DASHBOARD, Section.PROFILE, Section.ANALYTICS, Section.USERS,
        Section.STUDENTS, Section.FINANCE, Section.CERTIFICATES, Section.TIMETABLE,
        Section.ANNOUNCEMENTS, Section.REPORTS, Section.SUPPORT, Section.MESSAGES,
        Section.SETTINGS,
    }),
    Role.PRINCIPAL: frozenset({
        Section.DASHBOARD, Section.PROFILE, Section.SCHOOL_MANAGEMENT, Section.GRADES,
        Section.ANALYTICS, Section.ATTENDANCE, Section.STUDENTS, Section.FINANCE,
        Section.CERTIFICATES, Section.TIMETABLE, Section.ANNOUNCEMENTS, Section.REPORTS,
        Section.SUPPORT, Section.MESSAGES, Section.USERS, Section.SETTINGS,
    }),
    Role.TEACHER: frozenset({
        Section.DASHBOARD, Section.PROFILE, Section.ANALYTICS, Section.GRADES,
        Section.ATTENDANCE, Section.STUDENTS, Section.TIMETABLE, Section.ANNOUNCEMENTS,
        Section.REPORTS, Section.SUPPORT, Section.MESSAGES,
    }),
    Role.FINANCE_OFFICER: frozenset({
        Section.DASHBOARD, Section.PROFILE, Section.FINANCE, Section.ANALYTICS,
        Section.STUDENTS, Section.REPORTS, Section.ANNOUNCEMENTS, Section.MESSAGES,
        Section.ATTENDANCE, Section.TIMETABLE, Section.SUPPORT,
    }),
    Role.HR: frozenset({
        Section.DASHBOARD, Section.PROFILE, Section.ANALYTICS, Section.ATTENDANCE,
        Section.STUDENTS, Section.ANNOUNCEMENTS, Section.MESSAGES, Section.REPORTS,
        Section.SUPPORT, Section.USERS,
    }),
    Role.PARENT: frozenset({
        Section.DASHBOARD, Section.PROFILE, Section.GRADES, Section.ATTENDANCE,
        Section.FINANCE, Section.TIMETABLE, Section.ANNOUNCEMENTS, Section.MESSAGES,
        Section.REPORTS, Section.SUPPORT,
    }),
    # Admin features live in a separate surface; here only the landing page.
    Role.EDUFAM_ADMIN: frozenset({Section.DASHBOARD}),
}

# Roles whose data is only meaningful inside one school. Teachers and parents
# are scoped by class and child membership in the store instead.
TENANT_REQUIRED_ROLES: frozenset[Role] = frozenset({
    Role.SCHOOL_DIRECTOR,
    Role.PRINCIPAL,
    Role.FINANCE_OFFICER,
    Role.HR,
})

# Roles that see only some report types. Roles not listed here see every type
# as long as they can open the reports section at all.
REPORT_TYPE_RESTRICTIONS: dict[Role, frozenset[str]] = {
    Role.TEACHER: frozenset({"grades", "attendance", "grade_report", "attendance_report"}),
    Role.PARENT: frozenset({"progress_report", "grade_report", "attendance_report"}),
}

USER_MANAGER_ROLES: frozenset[Role] = frozenset({
    Role.SCHOOL_DIRECTOR,
    Role.PRINCIPAL,
    Role.HR,
})

ROLE_DISPLAY_NAMES: dict[Role, str] = {
    Role.SCHOOL_DIRECTOR: "School Director",
    Role.PRINCIPAL: "Principal",
    Role.TEACHER: "Teacher",
    Role.FINANCE_OFFICER: "Finance Officer",
    Role.HR: "HR Manager",
    Role.PARENT: "Parent",
    Role.EDUFAM_ADMIN: "EduFam Admin",
}

# How far a role's analytics reach inside its school.
ANALYTICS_SCOPES: dict[Role, str] = {
    Role.SCHOOL_DIRECTOR: "school",
    Role.PRINCIPAL: "school",
    Role.HR: "school",
    Role.TEACHER: "class",
    Role.PARENT: "student",
}
