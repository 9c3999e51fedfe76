# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/raysubmit/observers/console.py
import typer

from .events import BaseEvent

_HIDDEN = ("ts", "run_id", "namespace", "context")


class ConsoleObserver:
    def notify(self, event: BaseEvent) -> None:
        d = event.dict()
        k = event.__class__.__name__
        typer.echo(
            f"[{d['ts']}] {k} ns={d['namespace']} ctx={d['context']} data={{"
            + ", ".join(f"{x}={y}" for x, y in d.items() if x not in _HIDDEN) + "}",
            err=True,
        )
