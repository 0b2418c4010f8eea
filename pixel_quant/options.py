"""Mutable options handle wrapping an immutable :class:`QuantizeConfig`."""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from pixel_quant.config import ProgressCallback, QuantizeConfig
from pixel_quant.handle import Handle


class Options(Handle):
    """Quantization options with validating setters.

    Every setter builds a new frozen :class:`QuantizeConfig`, so an invalid
    value raises before anything changes and a build call can snapshot
    :attr:`config` without later setters affecting it.
    """

    def __init__(self, config: QuantizeConfig | None = None) -> None:
        self._config = config if config is not None else QuantizeConfig()

    @property
    def config(self) -> QuantizeConfig:
        self._check_alive()
        return self._config

    def _update(self, **changes: Any) -> None:
        self._check_alive()
        self._config = replace(self._config, **changes)

    def set_max_colors(self, colors: int) -> None:
        self._update(max_colors=colors)

    def set_speed(self, speed: int) -> None:
        self._update(speed=speed)

    def set_quality(self, minimum: int, maximum: int) -> None:
        self._update(min_quality=minimum, max_quality=maximum)

    def set_dithering_level(self, level: float) -> None:
        self._update(dithering_level=level)

    def set_progress_callback(self, callback: ProgressCallback | None) -> None:
        self._update(progress_callback=callback)

    @property
    def max_colors(self) -> int:
        return self.config.max_colors

    @property
    def speed(self) -> int:
        return self.config.speed

    @property
    def quality(self) -> tuple[int, int]:
        cfg = self.config
        return cfg.min_quality, cfg.max_quality

    def __repr__(self) -> str:
        state = repr(self._config) if self.alive else "destroyed"
        return f"Options({state})"
