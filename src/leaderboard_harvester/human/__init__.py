"""human: human-like timing and pointer behaviour for browser automation."""
from .behavior import (  # noqa: F401
    DelayPolicy,
    HumanDelay,
    NoDelay,
    bezier_move,
    seed_pointer,
    human_click,
    dismiss_restore_prompt,
)
