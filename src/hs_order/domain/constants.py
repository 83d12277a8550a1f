"""Matching policy constants."""

# Creation-time candidate scan (advisory, log only)
CANDIDATE_SCAN_RADIUS_KM = 20.0
# Provider-facing job feed
JOB_FEED_RADIUS_KM = 50.0
# Orders older than this drop out of the job feed entirely
JOB_EXPIRY_HOURS = 72
# Max concurrent SENT postulations per provider, system-wide
MAX_ACTIVE_POSTULATIONS = 3

PUBLIC_RECENT_WINDOW_HOURS = 24
PUBLIC_RECENT_MAX_LIMIT = 20

ACCEPTANCE_MESSAGE_TEMPLATE = (
    'Hi! I accepted your proposal for "{title}". Let\'s coordinate the details here.'
)
