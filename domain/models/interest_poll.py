"""
Interest poll domain model.

One poll is open per scheduling cadence. Each option slot (e.g. a weekday)
carries its own record: who reacted, whether it crossed the threshold, the
session it produced and the calendar event created for it.
"""

from dataclasses import dataclass, field
from datetime import datetime

from domain.models.session import Session


@dataclass
class SlotState:
    """Everything the poll knows about one option slot."""

    key: str  # reaction symbol, e.g. "1️⃣"
    label: str  # e.g. "Monday"
    weekday: int  # ISO weekday the slot stands for (1 = Monday)
    reactors: list[int] = field(default_factory=list)  # user ids, in reaction order
    confirmed: bool = False
    session: Session | None = None
    calendar_event_id: int | None = None

    @property
    def reaction_count(self) -> int:
        return len(self.reactors)

    def add_reactor(self, user_id: int) -> bool:
        if user_id in self.reactors:
            return False
        self.reactors.append(user_id)
        return True

    def remove_reactor(self, user_id: int) -> bool:
        if user_id not in self.reactors:
            return False
        self.reactors.remove(user_id)
        return True

    def revert(self) -> Session | None:
        """
        Drop confirmation, returning the session that was attached.

        The session's timers are cancelled before anything else changes.
        """
        session = self.session
        if session is not None:
            session.cancel_timers()
        self.confirmed = False
        self.session = None
        self.calendar_event_id = None
        return session


@dataclass
class InterestPoll:
    """An open expression-of-interest poll."""

    poll_id: int
    created_at: datetime
    slots: dict[str, SlotState]  # insertion order is display order
    message_ref: object | None = None
    cancelled_at: datetime | None = None

    @classmethod
    def create(
        cls,
        poll_id: int,
        created_at: datetime,
        slot_keys: list[str],
        slot_labels: list[str],
        slot_weekdays: list[int],
    ) -> "InterestPoll":
        if not (len(slot_keys) == len(slot_labels) == len(slot_weekdays)):
            raise ValueError("slot keys, labels and weekdays must have the same length")
        slots = {
            key: SlotState(key=key, label=label, weekday=weekday)
            for key, label, weekday in zip(slot_keys, slot_labels, slot_weekdays)
        }
        return cls(poll_id=poll_id, created_at=created_at, slots=slots)

    @property
    def is_open(self) -> bool:
        return self.cancelled_at is None

    @property
    def option_slots(self) -> list[str]:
        return list(self.slots)

    @property
    def reaction_count_per_slot(self) -> dict[str, int]:
        return {key: slot.reaction_count for key, slot in self.slots.items()}

    @property
    def confirmed_slots(self) -> set[str]:
        return {key for key, slot in self.slots.items() if slot.confirmed}

    def get_slot(self, key: str) -> SlotState | None:
        return self.slots.get(key)

    def close(self, when: datetime) -> list[Session]:
        """
        Close the poll, cancelling every slot's timers.

        Returns:
            Sessions that were still attached to slots
        """
        self.cancelled_at = when
        sessions = []
        for slot in self.slots.values():
            session = slot.revert()
            if session is not None:
                sessions.append(session)
        return sessions
