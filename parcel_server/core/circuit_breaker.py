"""
Circuit Breaker Pattern Implementation

Guards calls to the identity provider and the payment processor: repeated
failures open the circuit so later requests fail fast instead of queueing
behind a dead upstream, and every guarded call is bounded by a timeout.
"""
import asyncio
import threading
import time
from enum import Enum
from typing import Awaitable, Callable, TypeVar, ParamSpec
from dataclasses import dataclass

from parcel_server.core.logging import get_logger
from parcel_server.core.exceptions import CircuitBreakerOpenError, ServiceTimeoutError

logger = get_logger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

IDENTITY_PROVIDER = "identity_provider"
PAYMENT_PROCESSOR = "payment_processor"


class CircuitState(Enum):
    """Circuit breaker states"""
    CLOSED = "closed"      # Normal operation, requests pass through
    OPEN = "open"          # Failing, requests blocked
    HALF_OPEN = "half_open"  # Testing if service recovered


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker"""
    failure_threshold: int = 5         # Failures before opening
    success_threshold: int = 2          # Successes in half-open to close
    timeout_seconds: float = 30.0       # Time before trying half-open
    half_open_max_calls: int = 3        # Max calls in half-open state


@dataclass
class CircuitBreakerState:
    """State tracking for circuit breaker"""
    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    success_count: int = 0
    last_failure_time: float = 0.0
    half_open_calls: int = 0


class CircuitBreaker:
    """
    Circuit breaker for external service protection.

    States:
    - CLOSED: Normal operation, tracking failures
    - OPEN: Service is failing, block all requests
    - HALF_OPEN: Testing if service recovered
    """

    _instances: dict[str, "CircuitBreaker"] = {}
    _instances_lock = threading.Lock()

    def __init__(
        self,
        service_name: str,
        config: CircuitBreakerConfig | None = None
    ):
        self.service_name = service_name
        self.config = config or CircuitBreakerConfig()
        self._state = CircuitBreakerState()
        self._lock = threading.Lock()

    @classmethod
    def get_instance(
        cls,
        service_name: str,
        config: CircuitBreakerConfig | None = None
    ) -> "CircuitBreaker":
        """Get or create the shared breaker for a service"""
        if service_name not in cls._instances:
            with cls._instances_lock:
                if service_name not in cls._instances:
                    cls._instances[service_name] = cls(service_name, config)
        return cls._instances[service_name]

    @classmethod
    def reset_all(cls) -> None:
        """Drop all shared breakers (tests)"""
        with cls._instances_lock:
            cls._instances.clear()

    @property
    def state(self) -> CircuitState:
        return self._state.state

    @property
    def is_closed(self) -> bool:
        return self._state.state == CircuitState.CLOSED

    @property
    def is_open(self) -> bool:
        return self._state.state == CircuitState.OPEN

    @property
    def is_half_open(self) -> bool:
        return self._state.state == CircuitState.HALF_OPEN

    def _should_attempt_reset(self) -> bool:
        if self._state.state != CircuitState.OPEN:
            return False
        return time.time() - self._state.last_failure_time >= self.config.timeout_seconds

    def _transition_to(self, new_state: CircuitState) -> None:
        """Move to a new state; caller holds the lock"""
        old_state = self._state.state
        self._state.state = new_state

        if new_state == CircuitState.HALF_OPEN:
            self._state.half_open_calls = 0
            self._state.success_count = 0

        if new_state == CircuitState.CLOSED:
            self._state.failure_count = 0
            self._state.success_count = 0

        logger.info(
            f"Circuit breaker '{self.service_name}' transitioned",
            extra_data={
                "service": self.service_name,
                "old_state": old_state.value,
                "new_state": new_state.value
            }
        )

    def record_success(self) -> None:
        with self._lock:
            if self._state.state == CircuitState.HALF_OPEN:
                self._state.success_count += 1
                if self._state.success_count >= self.config.success_threshold:
                    self._transition_to(CircuitState.CLOSED)
            elif self._state.state == CircuitState.CLOSED:
                self._state.failure_count = 0

    def record_failure(self, error: Exception | None = None) -> None:
        with self._lock:
            self._state.failure_count += 1
            self._state.last_failure_time = time.time()

            logger.warning(
                f"Circuit breaker '{self.service_name}' recorded failure",
                extra_data={
                    "service": self.service_name,
                    "failure_count": self._state.failure_count,
                    "threshold": self.config.failure_threshold,
                    "error": str(error) if error else None
                }
            )

            if self._state.state == CircuitState.HALF_OPEN:
                self._transition_to(CircuitState.OPEN)
            elif self._state.failure_count >= self.config.failure_threshold:
                self._transition_to(CircuitState.OPEN)

    def can_execute(self) -> bool:
        with self._lock:
            if self._state.state == CircuitState.CLOSED:
                return True

            if self._state.state == CircuitState.OPEN:
                if self._should_attempt_reset():
                    self._transition_to(CircuitState.HALF_OPEN)
                    self._state.half_open_calls += 1
                    return True
                return False

            if self._state.half_open_calls < self.config.half_open_max_calls:
                self._state.half_open_calls += 1
                return True
            return False

    def get_retry_after(self) -> float:
        """Seconds until the circuit may be probed again"""
        if self._state.state != CircuitState.OPEN:
            return 0.0
        remaining = self.config.timeout_seconds - (time.time() - self._state.last_failure_time)
        return max(0.0, remaining)

    async def execute(
        self,
        func: Callable[P, Awaitable[T]],
        *args: P.args,
        timeout: float | None = None,
        is_failure: Callable[[Exception], bool] | None = None,
        **kwargs: P.kwargs
    ) -> T:
        """
        Await ``func`` under circuit breaker protection.

        Args:
            func: Coroutine function to call
            timeout: Upper bound in seconds; exceeding it counts as a failure
                and raises ServiceTimeoutError
            is_failure: Decides whether a raised exception is an upstream
                fault. Exceptions it rejects (e.g. a token the provider
                refused) propagate without tripping the circuit.

        Raises:
            CircuitBreakerOpenError: If circuit is open
        """
        if not self.can_execute():
            raise CircuitBreakerOpenError(self.service_name, self.get_retry_after())

        try:
            if timeout is not None:
                result = await asyncio.wait_for(func(*args, **kwargs), timeout=timeout)
            else:
                result = await func(*args, **kwargs)
        except asyncio.TimeoutError as e:
            self.record_failure(e)
            raise ServiceTimeoutError(self.service_name, timeout) from e
        except Exception as e:
            if is_failure is None or is_failure(e):
                self.record_failure(e)
            else:
                self.record_success()
            raise

        self.record_success()
        return result


def get_identity_provider_circuit_breaker() -> CircuitBreaker:
    """Breaker around public key fetches for ID token verification"""
    return CircuitBreaker.get_instance(
        IDENTITY_PROVIDER,
        CircuitBreakerConfig(
            failure_threshold=5,
            success_threshold=1,
            timeout_seconds=30.0
        )
    )


def get_payment_processor_circuit_breaker() -> CircuitBreaker:
    """Breaker around payment intent creation"""
    return CircuitBreaker.get_instance(
        PAYMENT_PROCESSOR,
        CircuitBreakerConfig(
            failure_threshold=5,
            success_threshold=2,
            timeout_seconds=60.0
        )
    )
