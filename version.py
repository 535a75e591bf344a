# Attendance Register - Build Version

BUILD_VERSION = "1.2.0"
BUILD_DATE = "2026-10-18"

# Changes in this build:
# - Chat messages and lock flag are updated with single-document operators
# - Snapshots carry schemaVersion; older snapshots are default-filled on read
# - Optional share code expiry (SHARE_TTL_MINUTES) and supersede policy
