"""Questionnaire engine constants shared across the SDK.

These values are referenced by the models, the validation engine, and the
session.  They mirror conventions of the questionnaire templates under
``templates/`` and of the host application that renders them.

Several constants can be overridden via environment variables so that
deployments can adjust upload limits without code changes.
"""

import os

# Value used by choice questions for the free-text "Other" option.
# Matching is case-insensitive ("Other" and "other" are both accepted).
OTHER_SENTINEL = "Other"

# Question types grouped by answer category.  The category decides which
# pydantic class a question deserialises into and which answer shape the
# validation engine expects.
TEXT_TYPES: frozenset[str] = frozenset({"text", "textarea", "email", "phone", "date"})
NUMBER_TYPES: frozenset[str] = frozenset({"number", "rating", "slider", "pain_scale"})
CHOICE_TYPES: frozenset[str] = frozenset({"single_choice", "multiple_choice", "checkbox"})
UPLOAD_TYPES: frozenset[str] = frozenset({"file_upload", "photo_upload"})

# Choice types that accept more than one selection.
MULTI_SELECT_TYPES: frozenset[str] = frozenset({"multiple_choice", "checkbox"})

# Upload defaults applied when a question's validation rules are silent.
# Overridable via FILE_UPLOAD_MAX_FILES / FILE_UPLOAD_MAX_SIZE etc.
FILE_UPLOAD_MAX_FILES = int(os.getenv("FILE_UPLOAD_MAX_FILES", "10"))
FILE_UPLOAD_MAX_SIZE = int(os.getenv("FILE_UPLOAD_MAX_SIZE", str(20 * 1024 * 1024)))
FILE_UPLOAD_ACCEPTED_TYPES: tuple[str, ...] = ("image/jpeg", "image/png", "application/pdf")

PHOTO_UPLOAD_MAX_FILES = int(os.getenv("PHOTO_UPLOAD_MAX_FILES", "5"))
PHOTO_UPLOAD_MAX_SIZE = int(os.getenv("PHOTO_UPLOAD_MAX_SIZE", str(10 * 1024 * 1024)))
PHOTO_UPLOAD_ACCEPTED_TYPES: tuple[str, ...] = ("image/jpeg", "image/png", "image/heic")

# Pain scale questions default to a 0..10 range.
PAIN_SCALE_MIN = 0
PAIN_SCALE_MAX = 10

# Structural patterns for the email and phone question types.
EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"
PHONE_PATTERN = r"^\+?\d{10,15}$"
# Characters stripped from a phone number before matching PHONE_PATTERN.
PHONE_STRIP_PATTERN = r"[\s\-()]"

# Rough per-page fill-out time used for the "time remaining" estimate.
MINUTES_PER_PAGE_ESTIMATE = 2.5

# Route prefix used by NavigationTarget.path.
ROUTE_PREFIX = "/questionnaire"
