# Inbound event types (client -> service)
JOIN = "join"
EDIT = "edit"
CHAT = "chat"
SIGNALING_ANNOUNCE = "signaling-announce"
PRESENCE_REFRESH = "presence-refresh"

# Outbound event types (service -> client)
CONNECTION_ESTABLISHED = "connection-established"
JOINED = "joined"
JOIN_REJECTED = "join-rejected"
BUFFER_SYNC = "buffer-sync"
MEMBER_LIST = "member-list"
CHAT_BROADCAST = "chat-broadcast"
MEMBER_JOINED = "member-joined"
MEMBER_LEFT = "member-left"
ERROR = "error"

# Rejection / error reasons
REASON_NAME_TAKEN = "name-taken"
REASON_INVALID_MESSAGE = "invalid-message"
REASON_UNKNOWN_EVENT = "unknown-event"
REASON_INTERNAL_ERROR = "internal-error"
