"""Session plumbing — lifecycle wire and audit trail."""

from asyncagent.session.audit import append_audit_record, load_audit_log
from asyncagent.session.wire import EventType, Wire, WireEvent

__all__ = [
    "EventType",
    "Wire",
    "WireEvent",
    "append_audit_record",
    "load_audit_log",
]
