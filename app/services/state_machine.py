from enum import Enum


class ConversationState(str, Enum):
    EMPTY = "empty"
    COLLECTING = "collecting"
    COMPLETE = "complete"


VALID_TRANSITIONS = {
    ConversationState.EMPTY: [ConversationState.COLLECTING],
    ConversationState.COLLECTING: [ConversationState.COLLECTING, ConversationState.COMPLETE],
    ConversationState.COMPLETE: [ConversationState.EMPTY],
}


class InvalidTransitionError(Exception):
    def __init__(self, from_state: ConversationState, to_state: ConversationState):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Invalid transition: {from_state.value} -> {to_state.value}")


def can_transition(from_state: ConversationState, to_state: ConversationState) -> bool:
    """Check if transition is valid."""
    allowed = VALID_TRANSITIONS.get(from_state, [])
    return to_state in allowed


def transition(from_state: ConversationState, to_state: ConversationState) -> ConversationState:
    """Perform state transition. Raises InvalidTransitionError if not allowed."""
    if not can_transition(from_state, to_state):
        raise InvalidTransitionError(from_state, to_state)
    return to_state


def start_collecting(current_state: ConversationState) -> ConversationState:
    """First inbound text opens a session."""
    return transition(current_state, ConversationState.COLLECTING)


def keep_collecting(current_state: ConversationState) -> ConversationState:
    """Extractor asked for more details."""
    return transition(current_state, ConversationState.COLLECTING)


def complete(current_state: ConversationState) -> ConversationState:
    """Extractor returned a complete ticket."""
    return transition(current_state, ConversationState.COMPLETE)


def reset(current_state: ConversationState) -> ConversationState:
    """Ticket persisted, session discarded."""
    return transition(current_state, ConversationState.EMPTY)
