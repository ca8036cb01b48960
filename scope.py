"""
Sensitive area tracking for area-scoped masking.

A sensitive area is an explicitly delimited region of execution during
which masking is active. The area depth lives in a context variable, so
each thread and each asyncio task sees its own state and log calls deep in
a call chain see it without parameter threading.

Usage:
    from scope import enter_sensitive_area

    with enter_sensitive_area():
        logger.info("Charging card %s", card_number)  # masked
"""

from contextvars import ContextVar


_area_depth: ContextVar[int] = ContextVar('sensitive_area_depth', default=0)


class SensitiveArea:
    """
    Handle for one entered sensitive area.

    The area is entered when the handle is created and left on release().
    Areas nest: masking stays active until every handle has been released.
    Releasing twice is a no-op.

    Examples:
        >>> area = SensitiveArea()
        >>> is_area_active()
        True
        >>> area.release()
        >>> is_area_active()
        False
    """

    def __init__(self):
        _area_depth.set(_area_depth.get() + 1)
        self.released = False

    def release(self) -> None:
        if self.released:
            return
        self.released = True
        _area_depth.set(max(_area_depth.get() - 1, 0))

    def __enter__(self) -> 'SensitiveArea':
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.release()


def enter_sensitive_area() -> SensitiveArea:
    """Activate masking for the current context until the handle is released."""
    return SensitiveArea()


def is_area_active() -> bool:
    """Return True if the current context is inside at least one sensitive area."""
    return _area_depth.get() > 0


def area_depth() -> int:
    return _area_depth.get()
