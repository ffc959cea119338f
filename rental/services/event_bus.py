"""
事件总线 - 进程内发布/订阅
退房、入住、取消、开票在事务提交后发布领域事件；处理器异常互相隔离，不回流到发布方
"""
from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, DefaultDict, Deque, Dict, List, Optional
import logging
import threading
import uuid

from rental.models.events import EventType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Event:
    """已发生的领域事件"""
    event_type: EventType
    data: Dict[str, Any]
    source: str  # 发布方（服务名）
    timestamp: datetime = field(default_factory=datetime.now)
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def booking_id(self) -> Optional[int]:
        return self.data.get("booking_id")


EventHandler = Callable[[Event], None]


class EventBus:
    """
    按 EventType 分发的事件总线

        event_bus.subscribe(EventType.BOOKING_CHECKED_OUT, send_thank_you_mail)
        event_bus.publish(Event(EventType.BOOKING_CHECKED_OUT, data, "checkout_service"))
    """

    def __init__(self, history_size: int = 100):
        self._handlers: DefaultDict[EventType, List[EventHandler]] = defaultdict(list)
        self._history: Deque[Event] = deque(maxlen=history_size)
        self._lock = threading.Lock()

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        with self._lock:
            if handler not in self._handlers[event_type]:
                self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> None:
        with self._lock:
            if handler in self._handlers[event_type]:
                self._handlers[event_type].remove(handler)

    def publish(self, event: Event) -> int:
        """
        同步调用该类型的全部处理器

        Returns:
            执行失败的处理器个数（失败只记日志）
        """
        with self._lock:
            self._history.append(event)
            handlers = list(self._handlers[event.event_type])

        failed = 0
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                failed += 1
                logger.error(
                    f"Handler {getattr(handler, '__name__', handler)} failed on "
                    f"{event.event_type.value} {event.event_id}: {e}",
                    exc_info=True
                )
        return failed

    def get_history(
        self,
        event_type: Optional[EventType] = None,
        booking_id: Optional[int] = None,
        limit: int = 50
    ) -> List[Event]:
        """最近发布的事件（最新的在前），可按类型或预订过滤"""
        with self._lock:
            history = list(self._history)
        if event_type is not None:
            history = [e for e in history if e.event_type == event_type]
        if booking_id is not None:
            history = [e for e in history if e.booking_id == booking_id]
        return history[::-1][:limit]

    def reset(self) -> None:
        """清空订阅与历史（测试用）"""
        with self._lock:
            self._handlers.clear()
            self._history.clear()


# 进程级事件总线
event_bus = EventBus()
