"""Simple finite state machine utility for enforcing allowed status transitions.

Usage:
    from sleepdesk.utils.fsm import TransitionValidator
    WEBHOOK_FSM = TransitionValidator({
        'pending': {'processed', 'failed'},
        'failed': {'retrying'},
        'retrying': {'processed', 'failed'},
        'processed': set(),
    })
    WEBHOOK_FSM.assert_can_transition(current_status, target_status)

Raises InvalidTransition (HTTP 409) if invalid.
"""
from __future__ import annotations
from typing import Dict, Set

from sleepdesk.errors import InvalidTransition


class TransitionValidator:
    def __init__(self, graph: Dict[str, Set[str]], field_name: str = 'status'):
        self.graph = graph
        self.field_name = field_name

    def can_transition(self, current: str, target: str) -> bool:
        return target in self.graph.get(current, set())

    def assert_can_transition(self, current: str, target: str):
        if not self.can_transition(current, target):
            raise InvalidTransition(current, target, self.field_name)
        return True

    def is_terminal(self, state: str) -> bool:
        return not self.graph.get(state)

__all__ = ['TransitionValidator']
