import logging
from enum import Enum, auto

from p2pchat.utils.error_codes import InvalidTransitionError

logger = logging.getLogger(__name__)


class BootstrapState(Enum):
    INITIALIZING = auto()
    RETURNING_USER = auto()
    NEW_USER = auto()
    PASSWORD_SETUP = auto()
    NETWORK_SETUP = auto()
    READY = auto()


ALLOWED_TRANSITIONS = {
    BootstrapState.INITIALIZING: {BootstrapState.RETURNING_USER, BootstrapState.NEW_USER},
    BootstrapState.RETURNING_USER: {BootstrapState.READY},
    BootstrapState.NEW_USER: {BootstrapState.PASSWORD_SETUP},
    BootstrapState.PASSWORD_SETUP: {BootstrapState.NETWORK_SETUP},
    BootstrapState.NETWORK_SETUP: {BootstrapState.READY},
    BootstrapState.READY: set(),
}


class StateMachine:
    def __init__(self, on_transition=None):
        self.current_state = BootstrapState.INITIALIZING
        self.history = [self.current_state]
        self.on_transition = on_transition

    def can_transition_to(self, new_state: BootstrapState) -> bool:
        return new_state in ALLOWED_TRANSITIONS[self.current_state]

    def transition_to(self, new_state: BootstrapState):
        if not self.can_transition_to(new_state):
            raise InvalidTransitionError(self.current_state, new_state)

        logger.debug("Bootstrap %s -> %s", self.current_state.name, new_state.name)
        self.current_state = new_state
        self.history.append(new_state)
        if self.on_transition:
            self.on_transition(new_state)
