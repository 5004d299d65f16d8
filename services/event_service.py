from datetime import datetime
from typing import Awaitable, Callable, List, Any
import logging
import pytz

from models.raffle import RaffleEvent

logger = logging.getLogger(__name__)

Subscriber = Callable[[RaffleEvent], Awaitable[None]]


class EventService:
    """Observable raffle events: kept in memory and pushed to subscribers"""

    def __init__(self, max_history: int = 1000):
        self.history: List[RaffleEvent] = []
        self.subscribers: List[Subscriber] = []
        self.max_history = max_history

    def subscribe(self, subscriber: Subscriber):
        self.subscribers.append(subscriber)

    @staticmethod
    def build(name: str, **args: Any) -> RaffleEvent:
        return RaffleEvent(name=name, args=args, timestamp=datetime.now(pytz.UTC))

    async def publish(self, events: List[RaffleEvent]):
        """Publish events of a committed operation, in order"""
        for event in events:
            self.history.append(event)
            logger.info(f"Event {event.name} {event.args}")
            for subscriber in self.subscribers:
                try:
                    await subscriber(event)
                except Exception as e:
                    # A failing listener must not undo a committed operation
                    logger.error(f"Error delivering event {event.name}: {e}")
        if len(self.history) > self.max_history:
            del self.history[: len(self.history) - self.max_history]

    def recent(self, limit: int = 50, name: str = None) -> List[RaffleEvent]:
        events = [e for e in self.history if name is None or e.name == name]
        return list(reversed(events))[:limit]

    def last(self, name: str) -> RaffleEvent:
        for event in reversed(self.history):
            if event.name == name:
                return event
        return None
