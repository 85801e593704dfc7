ROOM_KEY = "room:{room_id}"  # room id - full room document (json)
ROOM_NAME_KEY = "room-name:{name}"  # lowercased room name - room id
ACTIVE_USER_KEY = "active-user:{display_name}"  # display name - active user document (json)
USER_MARKER_KEY = "marker:user:{display_name}"  # display name - removal marker (json, short TTL)
ROOM_MARKER_KEY = "marker:room:{room_id}"  # room id - removal marker (json, short TTL)
APP_SHUTDOWN_KEY = "app:shutdown"  # "1" while new sessions are blocked

ROOM_PREFIX = "room:"
ACTIVE_USER_PREFIX = "active-user:"

# **Example `room:{id}` document fields**
# - `id`, `name`, `password` (plaintext or null), `member_limit`
# - `members` = {member_id: {id, display_name, role, joined_at}}
# - `selections` = {voter_id: chosen_id}
# - `state` = waiting | linking | completed
# - `match_result` = {pairs, leftovers, completed_at} or null
# - `returned_acknowledgers` = [member_id, ...]
# - `owner_id`, `created_at`, `last_activity_at`, `had_members`
