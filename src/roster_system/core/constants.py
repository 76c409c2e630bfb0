"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

DEFAULT_CACHE_TTL_SECONDS = 300

MIN_AGE = 18
MAX_AGE = 70
MIN_PASSWORD_LENGTH = 6

PERSON_CODE_PREFIX = "EMP"
PERSON_CODE_WIDTH = 6
PERSON_CODE_COUNTER = "person_code"

# Cache key namespaces
RECORD_LIST_NAMESPACE = "record-list"
RECORD_NAMESPACE = "record"

# Fields a member may change on their own record
MEMBER_UPDATABLE_FIELDS = ("subjects", "class_name")
