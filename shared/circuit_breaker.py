"""
Circuit breakers for the two remote dependencies of a turn.

- openrouter: every model-handled turn (ChatOpenAI.ainvoke)
- erp: customer validation, order submission and the lookup tools

After fail_max consecutive failures a breaker OPENs and calls fail fast with
pybreaker.CircuitBreakerError until reset_timeout elapses; callers map that
error to their usual "service unavailable" reply. ERP answers with a 4xx
status (customer not found, bad filter) are business outcomes, not outages,
and do not count as failures.

Usage:
    response = await call_with_breaker(erp_breaker, self._get, url, params)
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import pybreaker

logger = logging.getLogger(__name__)


class BreakerStateLogger(pybreaker.CircuitBreakerListener):
    """Log state transitions and counted failures."""

    def state_change(self, cb: pybreaker.CircuitBreaker, old_state, new_state) -> None:
        level = logging.WARNING if new_state.name == "open" else logging.INFO
        logger.log(
            level,
            f"Circuit breaker state change | name={cb.name} | {old_state.name} -> {new_state.name} | "
            f"reset_timeout={cb.reset_timeout}s",
        )

    def failure(self, cb: pybreaker.CircuitBreaker, exc: BaseException) -> None:
        logger.warning(
            f"Circuit breaker failure | name={cb.name} | count={cb.fail_counter} | "
            f"error_type={type(exc).__name__} | error={exc}"
        )


def is_client_error(exc: BaseException) -> bool:
    """True for HTTP 4xx answers."""
    return isinstance(exc, httpx.HTTPStatusError) and 400 <= exc.response.status_code < 500


_breakers: dict[str, pybreaker.CircuitBreaker] = {}
_listener = BreakerStateLogger()


def get_circuit_breaker(
    name: str,
    fail_max: int = 5,
    reset_timeout: int = 30,
    exclude: list[Any] | None = None,
) -> pybreaker.CircuitBreaker:
    """
    Return the breaker registered under name, creating it on first use.

    Args:
        name: Breaker name (also shown by /health)
        fail_max: Consecutive failures that open the circuit
        reset_timeout: Seconds the circuit stays open before a trial call
        exclude: Exception types or predicates that are not failures
    """
    breaker = _breakers.get(name)
    if breaker is None:
        breaker = pybreaker.CircuitBreaker(
            name=name,
            fail_max=fail_max,
            reset_timeout=reset_timeout,
            exclude=exclude or [],
            listeners=[_listener],
        )
        _breakers[name] = breaker
    return breaker


openrouter_breaker = get_circuit_breaker("openrouter", fail_max=5, reset_timeout=30)
erp_breaker = get_circuit_breaker("erp", fail_max=5, reset_timeout=15, exclude=[is_client_error])


async def call_with_breaker(
    breaker: pybreaker.CircuitBreaker,
    func: Callable[..., Awaitable[Any]],
    *args: Any,
    **kwargs: Any,
) -> Any:
    """
    Await func(*args, **kwargs) under the breaker.

    pybreaker's call_async() depends on Tornado; the calling() context
    manager drives the same state machine around a native await.

    Raises:
        pybreaker.CircuitBreakerError: The circuit is open or opened on this call
    """
    with breaker.calling():
        return await func(*args, **kwargs)


def reset_breakers() -> None:
    """Close every breaker (tests, admin reloads)."""
    for breaker in _breakers.values():
        breaker.close()


def get_breaker_status() -> dict[str, dict[str, Any]]:
    """State, failure count and reset timeout of each breaker."""
    return {
        name: {
            "state": breaker.current_state,
            "fail_counter": breaker.fail_counter,
            "reset_timeout": breaker.reset_timeout,
        }
        for name, breaker in _breakers.items()
    }
