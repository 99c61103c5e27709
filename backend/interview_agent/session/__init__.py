from interview_agent.session.state import SessionSnapshot, SessionState

__all__ = ["SessionSnapshot", "SessionState"]
