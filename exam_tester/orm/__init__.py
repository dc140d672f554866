from .base import Base

from .user import User, UserRole
from .exam import Exam
from .exam_attempt import ExamAttempt, AttemptStatus
from .submission import Submission, SubmissionStatus
from .stored_file import StoredFile
