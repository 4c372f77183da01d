"""Event names carried over the message relay."""

# One-to-one calls, client -> server
CALL_USER = "call-user"
ANSWER_CALL = "answer-call"
REJECT_CALL = "reject-call"
ICE_CANDIDATE = "ice-candidate"
END_CALL = "end-call"

# One-to-one calls, server -> client (ICE_CANDIDATE is reused in this direction)
INCOMING_CALL = "incoming-call"
CALL_ACCEPTED = "call-accepted"
CALL_REJECTED = "call-rejected"
CALL_ENDED = "call-ended"

# Group calls, client -> server
START_GROUP_CALL = "start-group-call"
JOIN_GROUP_CALL = "join-group-call"
LEAVE_GROUP_CALL = "leave-group-call"
END_GROUP_CALL = "end-group-call"

# Group calls, server -> client
GROUP_CALL_STARTED = "group-call-started"
GROUP_PARTICIPANT_JOINED = "group-participant-joined"
GROUP_PARTICIPANT_LEFT = "group-participant-left"
GROUP_CALL_ENDED = "group-call-ended"

# Mesh negotiation, both directions (server adds "from")
GROUP_OFFER = "group-offer"
GROUP_ANSWER = "group-answer"
GROUP_ICE_CANDIDATE = "group-ice-candidate"

# Presence, server -> all
ONLINE_USERS = "getOnlineUsers"
USER_LAST_SEEN_UPDATE = "userLastSeenUpdate"

ERROR = "error"
