from .principal import Admin, Principal, Student, Teacher, principal_from_user
