# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/raysubmit/observers/dispatcher.py
from __future__ import annotations
import logging
from typing import Iterable, Optional, Protocol
from .events import BaseEvent

log = logging.getLogger("raysubmit")


class Observer(Protocol):
    def notify(self, event: BaseEvent) -> None: ...


class EventBus:
    def __init__(self, observers: Optional[Iterable[Observer]] = None):
        self._observers = list(observers or [])

    def subscribe(self, observer: Observer) -> None:
        self._observers.append(observer)

    def emit(self, event: BaseEvent) -> None:
        for ob in self._observers:
            try:
                ob.notify(event)
            except Exception:
                # observers must not break submissions
                log.debug("observer %r failed on %s", ob, event.__class__.__name__, exc_info=True)
