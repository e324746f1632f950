"""Notification channel over an aiopubsub hub for pipeline state transitions."""

from collections import deque
from typing import Any, Awaitable, Callable, Dict, Optional

from aiopubsub import Hub, Key, Publisher, Subscriber

from reputation_system.config.logging import get_logger
from reputation_system.data_management.schemas import Notification, NotificationEvent


NotificationCallback = Callable[[Notification], Awaitable[None]]


class NotificationChannel:
    """
    Fire-and-forget broadcaster of pipeline events.

    Created once at process start and injected into every component that
    emits events. Events are published under Key("notification", <event>);
    observers subscribe to all of them through subscribe().

    emit() never raises into the pipeline: a failed publish is logged and
    dropped. A bounded history of recent notifications is kept for operators
    and for observers that connect late.
    """

    def __init__(self, hub: Optional[Hub] = None, history_size: int = 100):
        self.hub = hub or Hub()
        self._publisher = Publisher(self.hub, prefix=Key("notification"))
        self._subscribers: Dict[str, Subscriber] = {}
        self._history: deque[Notification] = deque(maxlen=history_size)
        self._shutdown = False
        self.logger = get_logger("NotificationChannel")

    async def emit(
        self,
        event: NotificationEvent,
        entity_id: Optional[str],
        message: str,
        **data: Any,
    ) -> Optional[Notification]:
        """
        Publish one notification.

        Args:
            event: Event type
            entity_id: Threat, Response, post or job the event concerns
            message: Human-readable message
            **data: Extra structured payload

        Returns:
            The emitted Notification, or None if publishing failed
        """
        if self._shutdown:
            self.logger.warning(f"Dropping {event.value} for {entity_id} - channel is shut down")
            return None

        try:
            notification = Notification(
                event=event,
                entity_id=entity_id,
                message=message,
                data=data,
            )
            self._history.append(notification)
            self._publisher.publish(Key(event.value), notification)
            self.logger.debug(f"Emitted {event.value} for {entity_id}: {message}")
            return notification
        except Exception as e:
            self.logger.error(f"Failed to emit {event.value} for {entity_id}: {e}")
            return None

    def subscribe(self, subscriber_name: str, callback: NotificationCallback) -> Subscriber:
        """
        Register an async callback for every notification event.

        Callback errors are logged and never reach the emitter.
        """
        if self._shutdown:
            raise RuntimeError("Cannot subscribe - channel is shut down")

        subscriber = self._subscribers.get(subscriber_name)
        if subscriber is None:
            subscriber = Subscriber(self.hub, subscriber_name)
            self._subscribers[subscriber_name] = subscriber

        async def handler(key: Key, notification: Notification) -> None:
            try:
                await callback(notification)
            except Exception as e:
                self.logger.opt(exception=True).error(
                    f"Subscriber {subscriber_name} callback error: {e}"
                )

        subscriber.add_async_listener(Key("notification", "*"), handler)
        self.logger.info(f"Subscriber {subscriber_name} subscribed to notifications")
        return subscriber

    async def unsubscribe(self, subscriber_name: str) -> None:
        subscriber = self._subscribers.pop(subscriber_name, None)
        if subscriber is None:
            self.logger.warning(f"Subscriber {subscriber_name} not found")
            return
        await subscriber.remove_all_listeners()

    def recent(
        self,
        limit: Optional[int] = None,
        event: Optional[NotificationEvent] = None,
    ) -> list[Notification]:
        """Most recent notifications, oldest first, optionally filtered by event."""
        items = [n for n in self._history if event is None or n.event == event]
        return items[-limit:] if limit else items

    async def shutdown(self) -> None:
        if self._shutdown:
            return
        self._shutdown = True
        for name in list(self._subscribers):
            await self.unsubscribe(name)
        self.logger.info("NotificationChannel shutdown complete")
