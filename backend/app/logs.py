import json
import sys
from datetime import datetime, timezone

_SENSITIVE_MARKERS = ("password", "token")


def json_log(level: str, event: str, **fields):
    rec = {"ts": datetime.now(timezone.utc).isoformat(), "level": level, "event": event, **fields}
    print(json.dumps(rec, default=str), file=sys.stderr)


def redact_params(params: dict) -> dict:
    # Procedure parameters end up in error logs; never write secrets there.
    out = {}
    for key, value in (params or {}).items():
        if any(m in key.lower() for m in _SENSITIVE_MARKERS):
            out[key] = "***"
        else:
            out[key] = value
    return out
