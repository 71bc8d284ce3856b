"""Well-known actor identities."""

from uuid import UUID

# Actor recorded on writes that arrive without an X-Actor-Id header.
SYSTEM_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000001")
