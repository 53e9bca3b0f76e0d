"""
Type definitions for the fnscope SDK
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional
from enum import Enum

if TYPE_CHECKING:
    from .scope import InstanceScope


class TriggerType(Enum):
    HTTP = "http"
    EVENT = "event"


class InvalidEventError(ValueError):
    """Raised when an inbound event cannot be turned into an Event"""


@dataclass
class HttpTriggerSpec:
    """HTTP trigger configuration"""
    path: str
    methods: List[str] = field(default_factory=lambda: ["GET", "POST"])


@dataclass
class EventTriggerSpec:
    """Event trigger configuration"""
    event_type: str
    resource: Optional[str] = None
    retry: bool = True  # Redeliver the event when the handler signals failure
    path: Optional[str] = None  # Push endpoint, defaults to /_events/<name>


@dataclass
class FunctionMetadata:
    """Complete function metadata extracted from decorators"""
    name: str
    handler: Callable
    module: str
    trigger_type: TriggerType
    http_trigger: Optional[HttpTriggerSpec] = None
    event_trigger: Optional[EventTriggerSpec] = None
    concurrency: int = 80  # Overlapping invocations allowed per instance


@dataclass
class InstanceValueDefinition:
    """An instance-scoped value and the initializer that computes it"""
    name: str
    initializer: Callable[[], Any]
    lazy: bool = False


@dataclass
class Request:
    """Incoming request object passed to HTTP functions"""
    method: str
    path: str
    headers: Dict[str, str]
    query_params: Dict[str, str]
    body: Any
    path_params: Dict[str, str] = field(default_factory=dict)

    @property
    def json(self) -> Any:
        """Get JSON body"""
        return self.body if isinstance(self.body, (dict, list)) else None


@dataclass
class Response:
    """Response object returned from functions"""
    body: Any
    status_code: int = 200
    headers: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def json(cls, data: Any, status_code: int = 200) -> "Response":
        """Create JSON response"""
        return cls(body=data, status_code=status_code)

    @classmethod
    def text(cls, content: str, status_code: int = 200) -> "Response":
        """Create plain text response"""
        return cls(body=content, status_code=status_code)

    @classmethod
    def error(cls, message: str, status_code: int = 500) -> "Response":
        """Create error response"""
        return cls(body={"error": message}, status_code=status_code)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, reading naive values as UTC"""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError) as e:
        raise InvalidEventError(f"Invalid event timestamp: {value!r}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class Event:
    """Event record delivered to event-triggered functions"""
    id: str
    timestamp: str
    type: str = ""
    source: str = ""
    data: Any = None

    def __post_init__(self):
        # Fail on arrival rather than inside the handler
        self._parsed_timestamp = parse_timestamp(self.timestamp)

    @property
    def time(self) -> datetime:
        """Timestamp as an aware datetime"""
        return self._parsed_timestamp

    def age_ms(self, now: Optional[datetime] = None) -> float:
        """Milliseconds elapsed between the event timestamp and now"""
        now = now or datetime.now(timezone.utc)
        return (now - self._parsed_timestamp).total_seconds() * 1000

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Event":
        """Create from a push payload, accepting CloudEvents 'time'"""
        if not isinstance(data, dict):
            raise InvalidEventError("Event payload must be an object")
        timestamp = data.get("timestamp") or data.get("time")
        if not timestamp:
            raise InvalidEventError("Event payload has no timestamp")
        return cls(
            id=str(data.get("id", "")),
            timestamp=timestamp,
            type=data.get("type", ""),
            source=data.get("source", ""),
            data=data.get("data"),
        )


@dataclass
class Context:
    """Execution context passed to functions"""
    function_name: str
    invocation_id: str
    timestamp: str
    instance: "InstanceScope"
    environment: Dict[str, str] = field(default_factory=dict)
