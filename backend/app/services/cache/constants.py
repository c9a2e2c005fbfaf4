"""Cache TTL and key prefix constants."""

# Cache TTL constants (in seconds); runtime values come from settings
TTL_ENTITY = 3600  # 1 hour - entity and detail views
TTL_SEARCH = 3600  # 1 hour - bounds staleness of broadly invalidated search results
TTL_SESSION = 86400  # 24 hours - session records

# Sentinel for an absent optional argument inside a key
NULL_SENTINEL = "null"

# Cache key prefixes
KEY_PREFIX_SESSION = "session"  # session:{user_id}
KEY_PREFIX_USER = "user"  # user:{id}
KEY_PREFIX_COURSE = "course"  # course:{id}
KEY_PREFIX_COURSES = "courses"  # courses:browse:all
KEY_PREFIX_TEACHER = "teacher"  # teacher:courses:{id}, teacher:details:{id}
KEY_PREFIX_TEACHERS = "teachers"  # teachers:public:{page}:{limit}:{search}
KEY_PREFIX_SEARCH = "search"  # search:advanced:..., search:quick:...

# Legacy underscore-delimited keys
LEGACY_STUDENT_DETAILS = "student_details"  # student_details_{id}
LEGACY_STUDENT_ENROLLED_COURSES = "student_enrolled_courses"  # student_enrolled_courses_{id}
LEGACY_USER_DATA = "user_data"  # user_data_{user_id}
LEGACY_SEARCH = "search"  # search_{keyword}_{type}_{course_id}_{teacher_id}

# Prefixes an administrator may clear by pattern
ADMIN_CLEARABLE_PREFIXES = (
    "search:",
    "courses:",
    "course:",
    "teachers:",
    "teacher:",
    "user:",
    f"{LEGACY_SEARCH}_",
    f"{LEGACY_STUDENT_DETAILS}_",
    f"{LEGACY_STUDENT_ENROLLED_COURSES}_",
    f"{LEGACY_USER_DATA}_",
)
