"""Cooperative yield token passed into long-running operations.

The pipeline runs on the host's single thread. Loops that may run for a
long time (per-image extraction, per-epoch fitting) call into a
:class:`YieldToken` so the host can pump its event loop in between steps.
How often that happens is a :class:`~client_side_training.config.YieldPolicy`
rather than a constant baked into the loop.
"""

from __future__ import annotations

from collections.abc import Callable

from loguru import logger

from client_side_training.config import YieldPolicy


def _noop() -> None:
    return None


class YieldToken:
    """Counts steps and calls the host's ``yield_fn`` according to a policy.

    Args:
        policy: Yield frequency for image loops and epoch loops.
        yield_fn: Called at each yield point, e.g. a GUI toolkit's
            ``process_events``. Defaults to a no-op for headless use.
    """

    def __init__(
        self,
        policy: YieldPolicy | None = None,
        yield_fn: Callable[[], None] | None = None,
    ) -> None:
        self.policy = policy or YieldPolicy()
        self._yield_fn = yield_fn or _noop
        self._steps = 0
        self.yields = 0

    def image_step(self) -> None:
        """Record one processed image; yield every ``every_n_images`` steps."""
        self._steps += 1
        if self._steps % self.policy.every_n_images == 0:
            self.yield_now()

    def epoch_step(self) -> None:
        """Record one finished epoch; yield if the policy asks for it."""
        if self.policy.every_epoch:
            self.yield_now()

    def yield_now(self) -> None:
        """Hand control to the host unconditionally."""
        self.yields += 1
        logger.trace(f"Yield point {self.yields} after {self._steps} step(s)")
        self._yield_fn()
