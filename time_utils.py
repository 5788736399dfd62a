from datetime import datetime, timezone

def to_iso_timestamp(timestamp: int) -> str:
    """
    Epoch seconds to an ISO-8601 UTC string, e.g. 2023-11-14T22:13:20.000Z
    """
    dt = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")
