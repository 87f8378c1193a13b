from .events import EventBus
from .session_manager import RuntimeState, SessionContext, SessionManager

__all__ = ["EventBus", "RuntimeState", "SessionContext", "SessionManager"]
