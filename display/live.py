"""Rich live display: one panel per source, updating during the fetch phase.

The display layer is fully decoupled from the runtime. It subscribes to an
asyncio.Queue of FetchEvents and renders them into a live terminal layout.
The runtime runs whether or not a display is attached.

Usage:
    event_queue = asyncio.Queue()
    display = LiveDisplay(runtime.source_names)

    with display.make_live() as live:
        pipeline = asyncio.create_task(runtime.execute(event_queue))
        consumer = asyncio.create_task(display.consume(event_queue, live))
        result = await pipeline
        await event_queue.put(None)  # sentinel, tells consume() to stop
        await consumer
"""

import asyncio
from dataclasses import dataclass, field

from rich.columns import Columns
from rich.console import Group
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

from schemas.events import EventType, FetchEvent


@dataclass
class _SourceState:
    """Mutable state for one source's panel."""
    name: str
    status: str = "waiting"    # waiting | running | complete | error
    elapsed_ms: float = 0.0
    messages: list[str] = field(default_factory=list)


_ICONS = {
    "waiting":  "[dim]○[/dim]",
    "running":  "[bold yellow]●[/bold yellow]",
    "complete": "[bold green]✓[/bold green]",
    "error":    "[bold red]✗[/bold red]",
}
_BORDERS = {
    "waiting":  "dim",
    "running":  "yellow",
    "complete": "green",
    "error":    "red",
}


class LiveDisplay:
    """Manages the Rich live layout and subscribes to the event queue.

    Attributes:
        _states: Source name -> _SourceState, updated as events arrive.
        _order:  Source names in registration order, preserving panel layout.
    """

    def __init__(self, source_names: list[str]) -> None:
        self._states = {name: _SourceState(name=name) for name in source_names}
        self._order = list(source_names)

    def make_live(self) -> Live:
        """Return a Rich Live context manager ready to use with `with`."""
        return Live(self._render(), refresh_per_second=12, transient=False)

    async def consume(self, queue: asyncio.Queue, live: Live) -> None:
        """Read events from the queue and update the display until sentinel."""
        while True:
            event = await queue.get()
            if event is None:
                break
            self._apply(event)
            live.update(self._render())

    def status_of(self, name: str) -> str | None:
        state = self._states.get(name)
        return state.status if state else None

    # ── Private ───────────────────────────────────────────────────────────────

    def _apply(self, event: FetchEvent) -> None:
        state = self._states.get(event.source)
        if state is None:
            return

        state.elapsed_ms = event.timestamp_ms

        if event.event_type == EventType.STARTED:
            state.status = "running"
            state.messages.append(event.message)
        elif event.event_type == EventType.COMPLETE:
            state.status = "complete"
            state.messages.append(f"✓ {event.message}")
        else:
            state.status = "error"
            state.messages.append(f"✗ {event.message}")

        state.messages = state.messages[-4:]

    def _render_panel(self, state: _SourceState) -> Panel:
        icon = _ICONS.get(state.status, "○")
        elapsed = f"[dim][{state.elapsed_ms / 1000:.2f}s][/dim]"
        lines: list[Text] = [Text.from_markup(f"{elapsed}  {icon}")]
        for msg in state.messages:
            lines.append(Text(f"  {msg}", style="dim"))

        return Panel(
            Group(*lines),
            title=f"[bold]{state.name}[/bold]",
            border_style=_BORDERS.get(state.status, "dim"),
            width=42,
        )

    def _render(self) -> Group:
        """Panels arranged in rows of two."""
        panels = [self._render_panel(self._states[name]) for name in self._order]
        rows = [Columns(panels[i : i + 2], equal=True) for i in range(0, len(panels), 2)]
        return Group(*rows)
