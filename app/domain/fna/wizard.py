"""FNA wizard step controller"""

import logging
from collections.abc import Callable, Sequence
from typing import Any, Optional

logger = logging.getLogger(__name__)

FNA_STEPS = (
    "familyMembers",
    "financialGoals",
    "medicalProtection",
    "childrenEducation",
    "familySecurity",
    "financialFreedom",
)


class WizardController:
    """
    Walks a fixed sequence of named steps, collecting one payload per step.

    advance() on the last step hands the accumulated answers to ``on_complete``
    and leaves the index on the last step, so calling it again re-submits
    (one completion per call). retreat() is allowed at any time, including
    after completion, so a submitted wizard can be edited in place.
    """

    def __init__(
        self,
        steps: Sequence[str] = FNA_STEPS,
        on_complete: Optional[Callable[[dict[str, Any]], None]] = None,
        answers: Optional[dict[str, Any]] = None,
    ):
        if not steps:
            raise ValueError("A wizard needs at least one step")
        self.steps = tuple(steps)
        self.on_complete = on_complete
        self.answers: dict[str, Any] = dict(answers or {})
        self.index = 0

    @classmethod
    def at_step(cls, step: str, **kwargs) -> "WizardController":
        """Build a controller positioned on ``step`` (resuming a saved wizard)"""
        controller = cls(**kwargs)
        try:
            controller.index = controller.steps.index(step)
        except ValueError:
            raise ValueError(f"Unknown wizard step: {step}") from None
        return controller

    @property
    def current_step(self) -> str:
        return self.steps[self.index]

    @property
    def is_last_step(self) -> bool:
        return self.index == len(self.steps) - 1

    def advance(self, payload: Any) -> bool:
        """Store ``payload`` for the current step. Returns True when completion fired."""
        self.answers[self.current_step] = payload

        if not self.is_last_step:
            self.index += 1
            return False

        logger.info(f"🏁 Wizard completed at step '{self.current_step}'")
        if self.on_complete:
            self.on_complete(dict(self.answers))
        return True

    def retreat(self) -> None:
        if self.index > 0:
            self.index -= 1
