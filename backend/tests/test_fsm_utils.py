from sleepdesk.errors import InvalidTransition
from sleepdesk.services.webhooks import WEBHOOK_FSM
from sleepdesk.utils.fsm import TransitionValidator
import pytest


def test_transition_validator_allows_valid():
    fsm = TransitionValidator({'A': {'B'}, 'B': set()})
    assert fsm.assert_can_transition('A', 'B') is True


def test_transition_validator_blocks_invalid():
    fsm = TransitionValidator({'A': {'B'}, 'B': set()})
    with pytest.raises(InvalidTransition) as exc:
        fsm.assert_can_transition('A', 'C')
    assert exc.value.status == 409
    assert str(exc.value) == 'Invalid status transition A -> C'


def test_webhook_graph():
    assert WEBHOOK_FSM.can_transition('pending', 'failed')
    assert WEBHOOK_FSM.can_transition('failed', 'retrying')
    assert not WEBHOOK_FSM.can_transition('failed', 'processed')
    assert WEBHOOK_FSM.is_terminal('processed')
    assert not WEBHOOK_FSM.is_terminal('retrying')
