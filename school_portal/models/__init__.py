# school_portal/models/__init__.py - Import every model so Base.metadata is complete
from school_portal.models.base import Base
from school_portal.models.school import School
from school_portal.models.user import User
from school_portal.models.profiles import (
    Admin, Teacher, Student, Parent, WhitelistedTeacher, WhitelistedParent,
)
from school_portal.models.academic import Class, Subject, TimetableEntry, AttendanceRecord, ExamResult
from school_portal.models.assignment import Assignment, Submission
from school_portal.models.fee import Fee, FeeStatus, FeePrediction
from school_portal.models.messaging import Conversation, ConversationParticipant, Message
from school_portal.models.ai import (
    PerformancePrediction, TeacherPerformanceReport, AIChatConversation, StudySession,
    AIGeneratedAssignment, LessonPlan, AttendanceAnalysis, ReportComment, HomeworkHelp, AdminInsight,
)
from school_portal.models.notification import SmartNotification

__all__ = [
    "Base", "School", "User",
    "Admin", "Teacher", "Student", "Parent", "WhitelistedTeacher", "WhitelistedParent",
    "Class", "Subject", "TimetableEntry", "AttendanceRecord", "ExamResult",
    "Assignment", "Submission",
    "Fee", "FeeStatus", "FeePrediction",
    "Conversation", "ConversationParticipant", "Message",
    "PerformancePrediction", "TeacherPerformanceReport", "AIChatConversation", "StudySession",
    "AIGeneratedAssignment", "LessonPlan", "AttendanceAnalysis", "ReportComment", "HomeworkHelp", "AdminInsight",
    "SmartNotification",
]
