from services.sessions import SessionLifecycle

__all__ = ["SessionLifecycle"]
