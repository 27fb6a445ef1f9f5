"""Cross-session memory: session context aggregation and scoped erasure."""

from src.memory.context import ContextResult, build_context, merge_sessions
from src.memory.erase import EraseResult, EraseScope, erase_memory
from src.memory.models import (
    CoachingProfile,
    PersonalContext,
    SessionRecord,
    SessionType,
    SharedContext,
)
from src.memory.store import MemoryStore

__all__ = [
    "CoachingProfile",
    "ContextResult",
    "EraseResult",
    "EraseScope",
    "MemoryStore",
    "PersonalContext",
    "SessionRecord",
    "SessionType",
    "SharedContext",
    "build_context",
    "erase_memory",
    "merge_sessions",
]
