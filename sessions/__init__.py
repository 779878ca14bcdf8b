"""
Sessions Package

The case/trial progression engine for one player.

Components:
- CaseLifecycleController: Owns the stage, the active case and its evaluation
- TurnEngine: Drives pre-trial drafting and the in-trial rounds
- RoundCountdown: Oral-trial clock with deadline auto-submit
- NegotiationProtocol: Accept / reject / counter a pending ADR proposal

Usage:
    from sessions.lifecycle_controller import CaseLifecycleController, Stage
    from sessions.turn_engine import TurnEngine, RoundState
    from sessions.countdown import RoundCountdown
    from sessions.negotiation import NegotiationProtocol

Note: Import directly from submodules to avoid circular import issues.
"""

__all__ = [
    "CaseLifecycleController",
    "NegotiationProtocol",
    "RoundCountdown",
    "RoundState",
    "Stage",
    "TurnEngine",
]
