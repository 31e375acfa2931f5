# backend/drivebook/core/constants.py
"""Shared constants for the booking engine."""

BRAND_NAME = "DriveBook"

DEFAULT_BUSINESS_TIMEZONE = "Australia/Brisbane"

# Weekday numbering used throughout settings: 0 = Sunday ... 6 = Saturday
SUNDAY = 0
SATURDAY = 6
WEEKDAY_NAMES = ("sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday")

MIN_CANCELLATION_REASON_LENGTH = 10
VACATION_REASON_MAX_LENGTH = 200

SLOT_DURATION_MIN = 30
SLOT_DURATION_MAX = 180
BUFFER_MINUTES_MAX = 120
MAX_BOOKINGS_PER_DAY_MIN = 1
MAX_BOOKINGS_PER_DAY_MAX = 20
MAX_ADVANCE_BOOKING_DAYS_DEFAULT = 30
MAX_ADVANCE_BOOKING_DAYS_MIN = 1
MAX_ADVANCE_BOOKING_DAYS_MAX = 365

CANCELLATION_NOTE_HEADER = "CANCELLED BY ADMIN"

API_TITLE = f"{BRAND_NAME} Booking API"
API_VERSION = "1.0.0"
