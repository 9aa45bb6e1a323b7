"""
Entitlement decisions (internal library).
Decision is pure (access.py); loading the context from storage lives in services/access.
"""
from mangashelf.entitlements.access import decide_chapter_access, decide_manga_access
from mangashelf.entitlements.models import (
    AccessContext,
    AccessDecision,
    AccessReason,
    ItemKind,
    ItemRef,
)

__all__ = [
    "AccessContext",
    "AccessDecision",
    "AccessReason",
    "ItemKind",
    "ItemRef",
    "decide_chapter_access",
    "decide_manga_access",
]
