from schooladmin.core.models.academic_year import AcademicYear
from schooladmin.core.models.audit_log import AuditLog
from schooladmin.core.models.class_model import SchoolClass
from schooladmin.core.models.enrollment import Enrollment
from schooladmin.core.models.section_model import Section
from schooladmin.core.models.student import Student

__all__ = [
    "AcademicYear",
    "AuditLog",
    "Enrollment",
    "SchoolClass",
    "Section",
    "Student",
]
