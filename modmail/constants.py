"""Constants used across modmail.

This module defines shared constants to ensure consistency.
"""

# Discord limits (not user-configurable)
DISCORD_MAX_MESSAGE_CHARS = 2000
DISCORD_MAX_THREAD_NAME_CHARS = 100
DISCORD_MAX_HISTORY_LIMIT = 100

# Recovery
DEFAULT_HISTORY_WINDOW = 100  # Earliest messages inspected per thread

# Relay role tags
USER_TAG = "(User)"
STAFF_TAG = "(Staff)"

# Default texts
DEFAULT_ATTACHMENT_PLACEHOLDER = "Sent an attachment"
DEFAULT_PRESENCE = "DM me to contact staff"
THREAD_TITLE_TEMPLATE = "Modmail from {name}"
TRUNCATION_SUFFIX = "\n[...truncated...]"

# Correspondent-facing texts
ACK_RECEIVED = "Your message has been sent to the staff."
NOTICE_CLOSED = "Your modmail thread has been closed by staff."

# Staff-facing texts
NOTICE_DELIVERED = "Message delivered."
NOTICE_DELIVERY_FAILED = "Failed to deliver message to the user."
NOTICE_DM_UNAVAILABLE = "Failed to deliver: {name} has direct messages disabled or has blocked the bot."
REPLY_NOT_TRACKED = "This channel is not a tracked modmail thread."
REPLY_CLOSED = "Thread closed."
REPLY_CLOSE_FAILED = "Failed to close thread: {reason}"
REPLY_MODMAIL_SENT = "Modmail sent successfully! You can now continue the conversation in DMs."
REPLY_MODMAIL_FAILED = "Error sending modmail: {reason}"
REPLY_NO_CONTENT = "No content provided"
