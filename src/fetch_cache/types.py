"""
Types for the fetch_cache caching and resilience engine.

All durations are integer milliseconds; all timestamps are epoch milliseconds.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Generic,
    Iterator,
    List,
    Literal,
    Mapping,
    Optional,
    TypeVar,
    Union,
)

T = TypeVar("T")

Clock = Callable[[], int]
"""Returns the current time in epoch milliseconds."""

CacheHit = Literal["fresh", "stale", "miss"]


class CacheMode(str, Enum):
    """How responses are admitted into the cache."""

    OFF = "off"
    MANUAL = "manual"
    FORCE = "force"
    STANDARD = "standard"


class HttpErrorCode(str, Enum):
    """Error codes carried by HttpError."""

    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    ABORT_ERROR = "ABORT_ERROR"
    PARSE_ERROR = "PARSE_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    CLIENT_ERROR = "CLIENT_ERROR"
    SERVER_ERROR = "SERVER_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    RETRY_EXHAUSTION_ERROR = "RETRY_EXHAUSTION_ERROR"


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


@dataclass
class HttpError:
    """Structured failure returned inside HttpFailure."""

    code: HttpErrorCode
    message: str
    status: Optional[int] = None
    status_text: Optional[str] = None
    url: Optional[str] = None
    method: Optional[str] = None
    request_id: Optional[str] = None
    body: Any = None
    cause: Optional[BaseException] = None


@dataclass
class RetryExhaustionError(HttpError):
    """All eligible attempts failed, or the circuit refused to try."""

    attempts: int = 0
    """Number of attempts made."""

    attempt_errors: List[HttpError] = field(default_factory=list)
    """Every error observed, oldest first."""

    context: Dict[str, Any] = field(default_factory=dict)

    @property
    def last_error(self) -> Optional[HttpError]:
        return self.attempt_errors[-1] if self.attempt_errors else None


@dataclass
class ResponseMeta:
    """Response metadata available on both success and failure."""

    status: int
    status_text: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    url: str = ""
    redirected: bool = False
    duration_ms: float = 0
    cached: bool = False
    cache_hit: CacheHit = "miss"


@dataclass
class HttpSuccess(Generic[T]):
    """Successful result. Discriminate on ``success``."""

    data: T
    response: ResponseMeta
    success: Literal[True] = True


@dataclass
class HttpFailure:
    """Failed result. Discriminate on ``success``."""

    error: HttpError
    response: Optional[ResponseMeta] = None
    success: Literal[False] = False


HttpResult = Union[HttpSuccess[T], HttpFailure]

Executor = Callable[[], Awaitable[HttpResult[T]]]
"""Single-attempt request executor closure."""


@dataclass
class RequestConfig:
    """Request identity plus per-request cache and retry options."""

    method: str
    url: str
    params: Optional[Mapping[str, Any]] = None
    headers: Optional[Dict[str, str]] = None
    body: Any = None
    timeout_ms: Optional[int] = None
    cache_ttl_ms: Optional[int] = None
    """Override the cache TTL for this request."""

    cache_tags: Optional[List[str]] = None
    """Tags attached to the cached entry for grouped invalidation."""

    no_cache: bool = False
    force_revalidate: bool = False
    no_retry: bool = False
    retry: Optional["RetryConfig"] = None
    request_id: Optional[str] = None


@dataclass
class CacheControlDirectives:
    """Parsed Cache-Control directives. Numeric values are milliseconds."""

    no_store: bool = False
    no_cache: bool = False
    max_age_ms: Optional[int] = None
    s_maxage_ms: Optional[int] = None
    private: bool = False
    public: bool = False
    must_revalidate: bool = False
    immutable: bool = False


@dataclass
class CacheEntry(Generic[T]):
    """Cache entry. Invariant: stale_until >= timestamp + ttl."""

    data: T
    timestamp: int
    ttl: int
    stale_until: int
    etag: Optional[str] = None
    last_modified: Optional[str] = None
    vary_headers: Optional[Dict[str, str]] = None
    tags: Optional[List[str]] = None
    needs_revalidation: bool = False
    """Revalidate with the origin before serving, even while fresh."""

    @property
    def fresh_until(self) -> int:
        return self.timestamp + self.ttl


@dataclass
class CacheSetOptions:
    """Options for storing a single entry."""

    ttl_ms: Optional[int] = None
    tags: Optional[List[str]] = None
    etag: Optional[str] = None
    last_modified: Optional[str] = None
    vary_headers: Optional[Dict[str, str]] = None
    needs_revalidation: bool = False


@dataclass
class CacheStats:
    """Running cache counters."""

    size: int
    max_size: int
    hits: int = 0
    misses: int = 0
    stale_hits: int = 0
    evictions: int = 0


@dataclass
class CacheConfig:
    """Cache configuration."""

    max_entries: int = 100
    """Maximum entries before LRU eviction. Default: 100"""

    ttl_ms: int = 60000
    """Default TTL in milliseconds. Default: 60000"""

    stale_while_revalidate_ms: int = 0
    """Window after TTL during which stale entries are served. Default: 0"""

    deduplicate: bool = False
    """Collapse concurrent identical requests. Default: False"""

    mode: CacheMode = CacheMode.STANDARD
    """Admission mode. Default: standard"""

    vary_headers: List[str] = field(default_factory=list)
    """Request headers included in the cache key."""

    methods: List[str] = field(default_factory=lambda: ["GET", "HEAD"])
    """Cacheable methods. Default: GET, HEAD"""

    key_generator: Optional[Callable[[RequestConfig], str]] = None
    """Custom cache key generator."""

    tags: Dict[str, Callable[[RequestConfig], List[str]]] = field(default_factory=dict)
    """Named functions deriving tags from a request."""


@dataclass
class RetryConfig:
    """Retry configuration"""

    max_retries: int = 3
    """Maximum number of retries. Default: 3"""

    retry_on: List[int] = field(
        default_factory=lambda: [408, 429, 500, 502, 503, 504]
    )
    """HTTP status codes that should trigger retry"""

    base_delay_ms: int = 1000
    """Base delay for exponential backoff. Default: 1000"""

    max_delay_ms: int = 30000
    """Maximum delay between retries. Default: 30000"""

    jitter: float = 0.1
    """Jitter factor (0-1). Default: 0.1"""

    should_retry: Optional[Callable[[HttpError, int], bool]] = None
    """Custom predicate; takes precedence over the default rules"""


@dataclass
class CircuitBreakerConfig:
    """Circuit breaker configuration."""

    failure_threshold: int = 5
    """Failures before the circuit opens. Default: 5"""

    recovery_timeout_ms: int = 60000
    """Time the circuit stays open before a trial call. Default: 60000"""


class CacheEventType(str, Enum):
    """Event types emitted by the LRU cache."""

    HIT = "cache:hit"
    STALE_HIT = "cache:stale-hit"
    MISS = "cache:miss"
    SET = "cache:set"
    EVICT = "cache:evict"
    EXPIRE = "cache:expire"
    REVALIDATE = "cache:revalidate"


@dataclass
class CacheEvent:
    """Cache event."""

    type: CacheEventType
    key: str
    timestamp: int
    metadata: Optional[Dict[str, Any]] = None


CacheEventListener = Callable[[CacheEvent], None]

RetryEventType = Literal[
    "attempt:start",
    "attempt:success",
    "attempt:fail",
    "retry:wait",
]


@dataclass
class RetryEvent:
    """Event emitted by the retry strategy"""

    type: RetryEventType
    attempt: int
    data: Dict[str, Any] = field(default_factory=dict)


RetryEventListener = Callable[[RetryEvent], None]


class CacheStorage(ABC, Generic[T]):
    """Synchronous key-value storage for cache entries."""

    @abstractmethod
    def get(self, key: str) -> Optional[CacheEntry[T]]:
        """Get an entry by key."""

    @abstractmethod
    def set(self, key: str, entry: CacheEntry[T]) -> None:
        """Store an entry."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Delete an entry."""

    @abstractmethod
    def clear(self) -> None:
        """Remove every entry."""

    @abstractmethod
    def has(self, key: str) -> bool:
        """Check if a key exists."""

    @abstractmethod
    def keys(self) -> Iterator[str]:
        """Iterate over keys."""

    @property
    @abstractmethod
    def size(self) -> int:
        """Number of stored entries."""
