from rich.live import Live
from rich.table import Table
from rich.console import Console
from rich.panel import Panel
from rich.text import Text
import threading

from sprinkler_bridge.core.enums import ProgramStatus, ValvePhase
from sprinkler_bridge.core.irrigation_controller import IrrigationController
from sprinkler_bridge.utils.logger import get_dashboard_log_handler, get_logger
from sprinkler_bridge.__version__ import __version__ as version
import sprinkler_bridge.utils.time_utils as time_utils


PHASE_STYLES = {
    ValvePhase.ACTIVE: ("💧 Watering", "bold green"),
    ValvePhase.OPENING: ("⏳ Opening", "yellow"),
    ValvePhase.CLOSING: ("⏳ Closing", "yellow"),
    ValvePhase.INACTIVE: ("Off", "dim"),
}

MODE_STYLES = {
    ProgramStatus.OFF: "dim",
    ProgramStatus.SCHEDULED: "cyan",
    ProgramStatus.MANUAL: "yellow",
    ProgramStatus.OVERRIDE: "bold magenta",
}

LOG_LEVEL_STYLES = {
    "ERROR": "red",
    "CRITICAL": "bold red",
    "WARNING": "yellow",
}


class BridgeCLI:
    """Read-only live dashboard of the bridge state, refreshed until stop() is called."""

    def __init__(self, controller: IrrigationController, refresh_interval=0.5, max_logs=10):
        self.controller = controller
        self.refresh_interval = refresh_interval
        self.console = Console()
        self.log_handler = get_dashboard_log_handler(max_logs=max_logs)
        self.logger = get_logger("BridgeCLI")
        self._stop_event = threading.Event()

    def run(self):
        with Live(auto_refresh=False, console=self.console, screen=True) as live:
            while not self._stop_event.is_set():
                try:
                    dashboard = self.render_dashboard()
                except Exception as e:
                    self.logger.error(f"Error rendering dashboard: {e}")
                    dashboard = Panel(Text("Error rendering dashboard.", style="red"), title="Dashboard - Error", expand=True)
                live.update(dashboard, refresh=True)
                self._stop_event.wait(self.refresh_interval)

    def stop(self):
        self._stop_event.set()

    # ===========================================================================================================
    # Rendering
    # ===========================================================================================================

    def render_dashboard(self):
        info = self.controller.device_info
        mode = self.controller.program_mode
        last_status = self.controller.last_status

        sys_table = Table.grid(expand=True)
        sys_table.add_column(justify="left")
        sys_table.add_column(justify="left")
        sys_table.add_row("Device", f"{info.manufacturer} {info.device_identifier}")
        sys_table.add_row("Firmware / Hardware", f"{info.firmware_version} / {info.hardware_version}")
        sys_table.add_row("Program mode", Text(mode.value.upper(), style=MODE_STYLES.get(mode, "")))
        sys_table.add_row("Rain delay", "ON" if self.controller.rain_delay else "off")
        sys_table.add_row("Last poll", "OK" if last_status is not None else "N/A")
        sys_table.add_row("Current time", time_utils.now().strftime("%d.%m.%Y %H:%M:%S"))

        valves_table = self.render_valves()

        logs_text = Text()
        for level, msg in list(self.log_handler.logs):
            logs_text.append(msg + "\n", style=LOG_LEVEL_STYLES.get(level, ""))
        logs_panel = Panel(logs_text if logs_text.plain else "No logs yet.", title="Logs", expand=True)

        dashboard = Table.grid(expand=True)
        dashboard.add_row(Panel(sys_table, title=f"OpenSprinkler Bridge v{version}", expand=True))
        dashboard.add_row(valves_table)
        dashboard.add_row(logs_panel)
        return dashboard

    def render_valves(self):
        valves_table = Table(title="Valves", expand=True)
        valves_table.add_column("Station", justify="center")
        valves_table.add_column("Name")
        valves_table.add_column("State")
        valves_table.add_column("Remaining", justify="right")
        valves_table.add_column("Duration", justify="right")
        valves_table.add_column("Manual", justify="center")

        for status in self.controller.get_all_valve_statuses():
            label, style = PHASE_STYLES[status.phase]
            remaining = time_utils.format_duration(status.remaining_duration) if status.in_use else "-"
            valves_table.add_row(
                str(status.index + 1),
                status.name,
                Text(label, style=style),
                remaining,
                time_utils.format_duration(status.duration),
                "✔" if status.manually_triggered else "",
            )
        return valves_table
