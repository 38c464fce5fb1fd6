"""Textual TUI for the plant watering client."""

import logging
from typing import Optional

from rich.markup import escape
from textual import work, on
from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.message import Message
from textual.widgets import Button, Footer, Header, ProgressBar, RichLog, Static

from appliance import ApplianceClient
from humidity import HumidityReading
from netinfo import describe_local_ip


class TuiLogHandler(logging.Handler):
    """Forwards log records to the app's RichLog panel.

    post_message is thread-safe, so records from the simulator thread or
    requests' worker threads can be routed the same way as loop records.
    """

    STYLES = {
        logging.DEBUG: "dim",
        logging.WARNING: "yellow",
        logging.ERROR: "bold red",
        logging.CRITICAL: "bold red",
    }

    def __init__(self, app: "PlantWateringApp", level=logging.INFO):
        super().__init__(level)
        self.app = app
        self.setFormatter(logging.Formatter("%(asctime)s %(message)s", "%H:%M:%S"))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            style = self.STYLES.get(record.levelno, "")
            self.app.post_message(self.app.LogMsg(self.format(record), style))
        except Exception:
            self.handleError(record)


class PlantWateringApp(App):
    """Humidity display and watering toggle for one appliance."""

    TITLE = "Plant Watering"

    CSS = """
    Screen {
        background: #1e1b3c;
    }
    #sidebar {
        width: 30;
        dock: left;
        border-right: solid $accent;
        padding: 1;
        background: $surface;
    }
    #panel {
        height: auto;
        align-horizontal: center;
        padding: 1 2;
    }
    #panel > Static {
        width: 100%;
        content-align: center middle;
    }
    #humidity-bar {
        width: 100%;
        margin: 1 0;
    }
    #toggle {
        margin-top: 1;
    }
    #log {
        height: 1fr;
        border: solid $primary;
    }
    """

    BINDINGS = [
        ("w", "toggle_watering", "Water"),
        ("r", "poll_now", "Refresh"),
        ("f3", "clear_log", "Clear"),
        ("q", "quit", "Quit"),
    ]

    # ---- Custom Messages ----

    class ReadingMsg(Message):
        """A humidity poll finished (successfully or not)."""
        def __init__(self, reading: HumidityReading):
            super().__init__()
            self.reading = reading

    class CommandDoneMsg(Message):
        """The appliance answered (or failed to answer) a watering command."""
        def __init__(self, desired: bool, accepted: bool):
            super().__init__()
            self.desired = desired
            self.accepted = accepted

    class LogMsg(Message):
        """Generic log line for the RichLog panel."""
        def __init__(self, text: str, style: str = ""):
            super().__init__()
            self.text = text
            self.style = style

    # ---- Init ----

    def __init__(self, client: ApplianceClient, ip_text: Optional[str] = None,
                 log_level=logging.INFO):
        super().__init__()
        self.client = client
        self.ip_text = ip_text if ip_text is not None else describe_local_ip()
        self._log_handler = TuiLogHandler(self, level=log_level)

    # ---- Layout ----

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal():
            yield Static("Starting...", id="sidebar")
            with Vertical():
                with Vertical(id="panel"):
                    yield Static(self.ip_text, id="ip")
                    yield Static("Humidity: 0%", id="humidity")
                    yield ProgressBar(total=100, show_eta=False, id="humidity-bar")
                    yield Static("Watering: OFF", id="watering")
                    yield Button("Water Plant", id="toggle", variant="primary")
                yield RichLog(id="log", wrap=True, markup=True)
        yield Footer()

    def on_mount(self) -> None:
        """Hook logging into the log panel and start the poll timer."""
        logging.getLogger().addHandler(self._log_handler)
        self.log_message(f"Appliance: {self.client.address}")
        self.update_view()
        self.start_polling()

    def on_unmount(self) -> None:
        """Cancel the poll loop so no periodic task outlives the view."""
        self.workers.cancel_group(self, "poll")
        self.client.close()
        logging.getLogger().removeHandler(self._log_handler)

    # ---- Workers ----

    @work(exclusive=True, group="poll")
    async def start_polling(self) -> None:
        """Run the appliance poll loop for the lifetime of the app."""
        await self.client.poll_loop(on_reading=self._post_reading)

    @work(group="poll_once")
    async def poll_once(self) -> None:
        reading = await self.client.poll()
        self._post_reading(reading)

    @work(group="cmd")
    async def send_watering(self, desired: bool) -> None:
        """Send one watering command and report the outcome."""
        self.update_view()
        accepted = await self.client.set_watering(desired)
        self.post_message(self.CommandDoneMsg(desired, accepted))

    def _post_reading(self, reading: HumidityReading) -> None:
        self.post_message(self.ReadingMsg(reading))

    # ---- Message Handlers ----

    def on_plant_watering_app_reading_msg(self, msg: ReadingMsg) -> None:
        self.update_view()

    def on_plant_watering_app_command_done_msg(self, msg: CommandDoneMsg) -> None:
        if not msg.accepted:
            self.notify("Appliance did not accept the command", severity="warning")
        self.update_view()

    def on_plant_watering_app_log_msg(self, msg: LogMsg) -> None:
        log = self.query_one("#log", RichLog)
        text = escape(msg.text)
        if msg.style:
            log.write(f"[{msg.style}]{text}[/{msg.style}]")
        else:
            log.write(text)

    @on(Button.Pressed, "#toggle")
    def on_toggle_pressed(self, event: Button.Pressed) -> None:
        self.action_toggle_watering()

    # ---- UI Updates ----

    def update_view(self) -> None:
        """Refresh every widget from the client's state."""
        state = self.client.state
        busy = self.client.command_in_flight

        humidity = f"Humidity: {state.humidity}%"
        if state.stale:
            humidity += " [yellow](stale)[/yellow]"
        self.query_one("#humidity", Static).update(humidity)
        self.query_one("#humidity-bar", ProgressBar).update(progress=state.humidity)

        if state.watering:
            self.query_one("#watering", Static).update("[green]Watering: ON[/green]")
        else:
            self.query_one("#watering", Static).update("[red]Watering: OFF[/red]")

        button = self.query_one("#toggle", Button)
        if busy:
            button.label = "Sending..."
        else:
            button.label = "Stop Watering" if state.watering else "Water Plant"
        button.disabled = busy

        self._update_sidebar()

    def _update_sidebar(self) -> None:
        client = self.client
        state = client.state
        lines = ["[bold]Status[/bold]", ""]
        lines.append(f"{client.address}")
        lines.append(f"Phase: [bold]{client.phase.value}[/bold]")
        lines.append("")
        lines.append(f"Polls:  {state.poll_count}")
        if state.failed_polls:
            lines.append(f"Failed: [red]{state.failed_polls}[/red]")
        else:
            lines.append("Failed: 0")
        if state.last_reading is not None:
            lines.append(f"\nLast: {escape(state.last_reading.describe())}")
        self.query_one("#sidebar", Static).update("\n".join(lines))

    # ---- Actions ----

    def action_toggle_watering(self) -> None:
        """Ask for the opposite of what is currently displayed."""
        if self.client.command_in_flight:
            self.notify("Command already in progress", severity="warning")
            return
        self.send_watering(not self.client.state.watering)

    def action_poll_now(self) -> None:
        self.poll_once()

    def action_clear_log(self) -> None:
        """Clear the log panel."""
        self.query_one("#log", RichLog).clear()

    def log_message(self, text: str, style: str = ""):
        """Convenience: post a LogMsg."""
        self.post_message(self.LogMsg(text, style))
