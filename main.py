import asyncio
import logging
import datetime
from typing import Optional
import flet as ft
from flet import Padding

import osc_server
from aggregator import WindowedAggregator
from charts import FrequencyChart
from config import StreamingGraphConfig
from refresh_timer import RefreshTimer

CONFIG_PATH = "streaming_graph.yaml"

sg_logger = logging.getLogger("Streaming Graph")

logging.basicConfig(format="{asctime} - {name} - {levelname} - {message}", style="{", datefmt="%Y-%m-%d %H:%M", )

config: Optional[StreamingGraphConfig] = None
aggregator: Optional[WindowedAggregator] = None
chart: Optional[FrequencyChart] = None
refresh_timer: Optional[RefreshTimer] = None
osc_task: Optional[asyncio.Task] = None

# maximum log entries
OSC_LOG_MAX = 200


def init_config(path: str = CONFIG_PATH) -> StreamingGraphConfig:
	"""Load (or create) the YAML config and apply its logging level."""
	global config
	config = StreamingGraphConfig(path)
	level = config.logging_level()
	logging.getLogger().setLevel(level)
	sg_logger.setLevel(level)
	return config


def build_aggregator(cfg: StreamingGraphConfig) -> WindowedAggregator:
	min_span, max_span, segment_count, label_count = cfg.graph_settings()
	return WindowedAggregator(
		min_span=min_span,
		max_span=max_span,
		segment_count=segment_count,
		label_count=label_count,
		strict=bool(cfg.config("debug")),
	)


def configure_osc(cfg: StreamingGraphConfig, sink: WindowedAggregator):
	osc_server.set_sink(sink)
	osc_server.set_bind_address(
		cfg.config("bind_address"),
		cfg.config("bind_port"),
		cfg.config("endpoint"),
		cfg.config("value_type"),
	)
	osc_server.set_debug_mode(bool(cfg.config("debug")))


async def main(page: ft.Page):
	global aggregator, chart, refresh_timer, osc_task

	cfg = config if config is not None else init_config()
	aggregator = build_aggregator(cfg)
	chart = FrequencyChart(aggregator)
	configure_osc(cfg, aggregator)

	osc_status_control = ft.Text("OSC: stopped", color=ft.Colors.RED)
	osc_current_ip_control = ft.Text("Server not running", italic=True)
	readout_control = ft.Text("0", weight=ft.FontWeight.W_600, size=48)
	osc_log_list = ft.ListView(expand=True, spacing=2, height=160)

	def status_cb(running: bool):
		osc_status_control.value = "OSC: running" if running else "OSC: stopped"
		osc_status_control.color = ft.Colors.GREEN if running else ft.Colors.RED
		osc_toggle_button.content = "Stop OSC" if running else "Start OSC"
		page.update()

	def current_ip_cb(ip: str):
		osc_current_ip_control.value = ip
		page.update()

	def message_cb(msg):
		try:
			ts = datetime.datetime.fromtimestamp(msg["time"]).strftime("%H:%M:%S")
			state = "" if msg["accepted"] else " (rejected)"
			osc_log_list.controls.insert(0, ft.Text(f"{ts} {msg['endpoint']} f={msg['frequency']}{state}"))
			# keep the list bounded
			if len(osc_log_list.controls) > OSC_LOG_MAX:
				osc_log_list.controls = osc_log_list.controls[:OSC_LOG_MAX]
		except Exception:
			logging.exception("Failed to append OSC message to log list")

	osc_server.register_status_callback(status_cb)
	osc_server.register_ip_callback(current_ip_cb)
	osc_server.register_message_callback(message_cb)

	async def start_osc():
		global osc_task
		if osc_task is None or osc_task.done():
			osc_task = asyncio.create_task(osc_server.start_async_osc_server())
			osc_status_control.value = "OSC: starting"
			page.update()
			sg_logger.info("OSC server started from UI")

	async def stop_osc():
		global osc_task
		if osc_task is not None and not osc_task.done():
			osc_task.cancel()
			try:
				await osc_task
			except asyncio.CancelledError:
				pass
			sg_logger.info("OSC server stopped from UI")
		osc_task = None

	async def on_osc_toggle(e):
		if osc_server.is_running() or (osc_task is not None and not osc_task.done()):
			await stop_osc()
		else:
			await start_osc()

	def on_tick():
		chart.refresh()
		readout_control.value = f"{aggregator.max_frequency()}"
		# the chart redraws itself; only the readout needs pushing here
		readout_control.update()

	async def shutdown():
		global refresh_timer
		osc_server.unregister_status_callback(status_cb)
		osc_server.unregister_ip_callback(current_ip_cb)
		osc_server.unregister_message_callback(message_cb)
		await stop_osc()
		if refresh_timer is not None:
			await refresh_timer.stop()
			refresh_timer = None
		osc_server.set_sink(None)

	async def on_window_event(e):
		if e.type == ft.WindowEventType.CLOSE:
			sg_logger.debug("Close button pressed.")
			await shutdown()
			await page.window.destroy()

	"""
	Window Settings
	"""
	page.title = "Streaming Graph"
	page.window.min_width = 600
	page.window.min_height = 400
	page.window.width = 800
	page.window.height = 500
	page.window.prevent_close = True
	page.window.on_event = on_window_event
	page.theme = ft.Theme(color_scheme_seed=ft.Colors.BLUE)
	page.scroll = ft.ScrollMode.AUTO

	"""
	App Construction
	"""
	osc_toggle_button = ft.TextButton("Start OSC", on_click=on_osc_toggle)
	page.appbar = ft.AppBar(title=ft.Text("STREAMING GRAPH", theme_style=ft.TextThemeStyle.HEADLINE_SMALL, weight=ft.FontWeight.W_800), actions=[osc_toggle_button])
	page.bottom_appbar = ft.BottomAppBar(content=ft.Row(controls=[osc_status_control, osc_current_ip_control], tight=True), height=32, padding=Padding.only(left=16), bgcolor=ft.Colors.with_opacity(0, ft.Colors.BLUE))
	page.add(ft.Column(expand=True, controls=[ft.Row([readout_control], alignment=ft.MainAxisAlignment.CENTER), chart, osc_log_list]))

	refresh_timer = RefreshTimer(cfg.refresh_interval(), on_tick)
	refresh_timer.start()

	if cfg.config("auto_start_osc"):
		await start_osc()


if __name__ == "__main__":
	init_config()
	ft.run(main)
