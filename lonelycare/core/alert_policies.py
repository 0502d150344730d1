"""Alert and notification policy constants."""

from __future__ import annotations

# Default inactivity thresholds in minutes (24h / 48h / 72h)
DEFAULT_WARNING_MINUTES = 24 * 60
DEFAULT_DANGER_MINUTES = 48 * 60
DEFAULT_EMERGENCY_MINUTES = 72 * 60

# Upper bound accepted from the admin threshold update path (7 days)
MAX_THRESHOLD_MINUTES = 7 * 24 * 60

# In-process threshold cache lifetime
THRESHOLD_CACHE_TTL_SECONDS = 5 * 60

# Cooldown between notifications for the same (contact, tier)
COOLDOWN_SECONDS = 2 * 60 * 60
DIAGNOSTIC_COOLDOWN_SECONDS = 10 * 60

# Do not report the same contact to emergency services twice within this window
ESCALATION_GUARD_HOURS = 24

# Bounded local histories
NOTIFICATION_HISTORY_LIMIT = 100
EMERGENCY_HISTORY_LIMIT = 30

# Banner auto-dismiss, seconds
BANNER_DISMISS_SECONDS = 10
EMERGENCY_BANNER_DISMISS_SECONDS = 20

# Full-screen takeover expiry, seconds
TAKEOVER_EXPIRE_SECONDS = 30

# Local cache keys
THRESHOLDS_CACHE_KEY = "notification_thresholds"
COOLDOWN_CACHE_KEY = "notification_cooldowns"
NOTIFICATION_HISTORY_CACHE_KEY = "notification_history"
EMERGENCY_HISTORY_CACHE_KEY = "emergency_history"
ESCALATION_REPORTS_CACHE_KEY = "emergency_reports"

# Remote admin settings key holding threshold config
THRESHOLDS_SETTING_KEY = "notification_thresholds"
