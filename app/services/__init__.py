from app.services.state_machine import (
    ConversationState,
    InvalidTransitionError,
    can_transition,
    complete,
    keep_collecting,
    reset,
    start_collecting,
    transition,
)
