import flet as ft
import flet_charts as fch
import logging

from aggregator import WindowedAggregator


class FrequencyChart(fch.LineChart):
    """Smooth curve over the segments of a ``WindowedAggregator``.

    - Both axes run from 0 to 1: x is the position inside the time window and
      y is the segment frequency relative to the busiest retained sample.
    - ``refresh`` is the tick entry point: it updates the aggregator, rebuilds
      the series and asks the page to redraw when attached to one.
    """

    logger = logging.getLogger("FrequencyChart")

    def __init__(self, aggregator: WindowedAggregator):
        super().__init__()
        self.aggregator = aggregator
        self.line_color = ft.Colors.GREEN
        self.curve_points: list[tuple[float, float]] = []

        self.data_series = [self._build_series([(0.0, 0.0), (1.0, 0.0)])]

        self.interactive = False
        self.horizontal_grid_lines = fch.ChartGridLines(
            color=ft.Colors.with_opacity(0.2, ft.Colors.ON_SURFACE), width=1
        )
        self.left_axis = self._build_left_axis()
        self.min_x = 0
        self.max_x = 1
        self.min_y = 0
        self.max_y = 1
        self.height = 128
        self.expand = True

    def _build_series(self, points: list[tuple[float, float]]) -> fch.LineChartData:
        return fch.LineChartData(
            stroke_width=2,
            color=self.line_color,
            curved=True,
            below_line_gradient=ft.LinearGradient(
                colors=[
                    ft.Colors.with_opacity(0.25, self.line_color),
                    "transparent",
                ],
                begin=ft.Alignment.TOP_CENTER,
                end=ft.Alignment.BOTTOM_CENTER,
            ),
            points=[fch.LineChartDataPoint(x, y) for x, y in points],
        )

    def _build_left_axis(self) -> fch.ChartAxis:
        return fch.ChartAxis(
            label_size=50,
            labels=[
                fch.ChartAxisLabel(value=y, label=ft.Text(str(frequency), size=10))
                for y, frequency in self.aggregator.frequency_labels()
            ],
        )

    def _rebuild(self) -> None:
        self.curve_points = self.aggregator.tick()
        if not self.curve_points:
            # no segments configured: leave a flat baseline
            self.data_series = [self._build_series([(0.0, 0.0), (1.0, 0.0)])]
        else:
            self.data_series = [self._build_series(self.curve_points)]
        self.left_axis = self._build_left_axis()

    def refresh(self) -> None:
        """Tick the aggregator and request a UI update."""
        try:
            self._rebuild()
            # Only call self.update() if the control is attached to a page.
            try:
                if self.page is None:
                    return
            except Exception:
                # control isn't attached to a page (e.g. in unit tests)
                return
            try:
                self.update()
            except Exception:
                self.logger.exception("FrequencyChart.update failed during UI update")
        except Exception:
            self.logger.exception("Failed to refresh FrequencyChart")
