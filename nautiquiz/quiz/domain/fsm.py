import logging
from enum import Enum, auto

logger = logging.getLogger(__name__)


class SessionState(Enum):
    ACTIVE = auto()  # Questions are being answered
    COMPLETE = auto()  # End time recorded; terminal


class SessionAction(Enum):
    FINISH = auto()  # Explicit finish / early exit
    ADVANCE_PAST_END = auto()  # Navigated past the last question
    TIME_UP = auto()  # Countdown reached zero


def transition(state: SessionState, action: SessionAction) -> SessionState:
    """
    The Transition Table.
    Nothing leaves COMPLETE; repeated exits are no-ops.
    """
    match (state, action):
        case (SessionState.ACTIVE, SessionAction.FINISH):
            new_state = SessionState.COMPLETE
        case (SessionState.ACTIVE, SessionAction.ADVANCE_PAST_END):
            new_state = SessionState.COMPLETE
        case (SessionState.ACTIVE, SessionAction.TIME_UP):
            new_state = SessionState.COMPLETE

        case (SessionState.COMPLETE, _):
            logger.debug(f"FSM: {state.name} ignores {action.name}")
            return state

        case _:
            logger.error(f"⛔ INVALID TRANSITION: {state.name} + {action.name}")
            return state

    logger.info(f"🔄 FSM: {state.name} --[{action.name}]--> {new_state.name}")
    return new_state
