"""UTC time helpers.

Importing this module pins the process TZ to UTC. Timestamps are stored as
naive datetimes that are always UTC.
"""

import os
from datetime import UTC, datetime

os.environ["TZ"] = "UTC"


def utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)
