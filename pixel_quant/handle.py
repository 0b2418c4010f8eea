"""Explicit create/destroy lifecycle shared by options, images and results."""

from __future__ import annotations

from typing import Any

from pixel_quant.errors import InvalidPointerError


class Handle:
    """Base for engine objects with an explicit :meth:`destroy`.

    A handle may be destroyed exactly once. Any later use, including a
    second :meth:`destroy`, raises :class:`InvalidPointerError`; avoiding
    that is the caller's responsibility. Handles are also context managers
    and are destroyed on leaving the ``with`` block.
    """

    _destroyed: bool = False

    @property
    def alive(self) -> bool:
        return not self._destroyed

    def destroy(self) -> None:
        self._check_alive()
        self._release()
        self._destroyed = True

    def _release(self) -> None:
        """Drop owned resources. Subclasses override."""

    def _check_alive(self) -> None:
        if self._destroyed:
            msg = f"{type(self).__name__} has already been destroyed"
            raise InvalidPointerError(msg)

    def __enter__(self) -> Any:
        self._check_alive()
        return self

    def __exit__(self, *exc_info: object) -> None:
        if not self._destroyed:
            self.destroy()


def require_live(obj: object, kind: type[Handle], name: str) -> None:
    """Raise :class:`InvalidPointerError` unless *obj* is a live *kind*."""
    if obj is None or not isinstance(obj, kind):
        msg = f"{name} must be a {kind.__name__}, got {type(obj).__name__}"
        raise InvalidPointerError(msg)
    obj._check_alive()
