import hashlib
import json


def payload_dict(payload) -> dict:
    if payload is None:
        return {}
    if hasattr(payload, "model_dump"):
        return payload.model_dump(exclude_unset=True, mode="json")
    if isinstance(payload, dict):
        return payload
    return {}


def payload_hash(payload) -> str:
    s = json.dumps(payload_dict(payload), sort_keys=True, default=str)
    return hashlib.sha256(s.encode()).hexdigest()
