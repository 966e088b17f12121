"""Content digests for tamper and duplicate detection."""

import hashlib
import json
from datetime import date


def policy_content_hash(policy_number: str, holder_name: str, expiry_date: date, company_id: int) -> str:
    """SHA-256 over the identifying fields of a policy."""
    payload = json.dumps(
        {
            "policy_number": policy_number,
            "holder_name": holder_name,
            "expiry_date": expiry_date.isoformat(),
            "company_id": company_id,
        },
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
