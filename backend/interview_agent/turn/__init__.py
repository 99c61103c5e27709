from interview_agent.turn.lock import TurnLock

__all__ = ["TurnLock"]
