import logging
import threading
import tkinter as tk
from tkinter import filedialog, messagebox, ttk
import csv
from typing import Dict, List, Optional, Sequence

import matplotlib
from matplotlib.backends.backend_tkagg import FigureCanvasTkAgg
from matplotlib.figure import Figure

from wbexplorer.config import config
from wbexplorer.errors import WBExplorerError
from wbexplorer.sources.static_host import CountrySeriesData, StaticHostSource
from wbexplorer.storage.metadata import Country, Series
from wbexplorer.ui import selection as views
from wbexplorer.ui.selection import ExplorerState

matplotlib.use("TkAgg")

logger = logging.getLogger(__name__)

TABLE_LAYOUTS = {
    "Summary": views.summary_table,
    "Long (country-year)": views.long_table,
    "Years as rows": views.wide_table_by_year,
    "Countries as rows": views.wide_table_by_country,
}


class Dashboard(tk.Tk):
    def __init__(self, source: StaticHostSource, state: Optional[ExplorerState] = None) -> None:
        super().__init__()
        self.title("World Bank Data Explorer")
        self.geometry("1100x760")
        self.source = source
        self.state_model = state or ExplorerState()
        self._status_var = tk.StringVar(value="Ready")
        self._countries: List[Country] = []
        self._series: List[Series] = []
        self._country_names: Dict[str, Country] = {}
        self._visible_countries: List[Country] = []
        self._visible_series: List[Series] = []

        self._build_selectors()
        self._build_views()
        ttk.Label(self, textvariable=self._status_var, anchor="w").pack(fill="x", padx=10, pady=(0, 5))
        self.protocol("WM_DELETE_WINDOW", self._on_close)

        self._load_lookups_async()
        self._request_data()

    # -- layout ---------------------------------------------------------

    def _build_selectors(self) -> None:
        top = ttk.Frame(self)
        top.pack(fill="x", padx=10, pady=5)
        selection = self.state_model.selection

        country_frame = ttk.LabelFrame(top, text="Countries (multiple)")
        country_frame.pack(side="left", fill="y", padx=5)
        self.country_filter = tk.StringVar()
        self.country_filter.trace_add("write", lambda *_: self._populate_countries())
        ttk.Entry(country_frame, textvariable=self.country_filter).pack(fill="x", padx=5, pady=2)
        self.country_list = tk.Listbox(country_frame, selectmode="multiple", height=8, exportselection=False)
        self.country_list.pack(fill="both", expand=True, padx=5)
        self.country_list.bind("<<ListboxSelect>>", lambda e: self._on_country_pick())
        self.country_error = ttk.Label(country_frame, text="Loading countries...", foreground="gray")
        self.country_error.pack(fill="x", padx=5)
        self._selected_codes: List[str] = list(selection.countries)

        series_frame = ttk.LabelFrame(top, text="Data series")
        series_frame.pack(side="left", fill="both", expand=True, padx=5)
        self.series_filter = tk.StringVar()
        self.series_filter.trace_add("write", lambda *_: self._populate_series())
        ttk.Entry(series_frame, textvariable=self.series_filter).pack(fill="x", padx=5, pady=2)
        self.series_var = tk.StringVar()
        self.series_dropdown = ttk.Combobox(series_frame, textvariable=self.series_var, state="readonly", width=60)
        self.series_dropdown.pack(fill="x", padx=5)
        self.series_dropdown.bind("<<ComboboxSelected>>", lambda e: self._on_series_pick())
        self.series_error = ttk.Label(series_frame, text="Loading series...", foreground="gray")
        self.series_error.pack(fill="x", padx=5)

        options = ttk.LabelFrame(top, text="Chart")
        options.pack(side="left", fill="y", padx=5)
        ttk.Label(options, text="Type:").grid(row=0, column=0, padx=5, pady=2, sticky="w")
        self.chart_type = tk.StringVar(value=selection.chart_type)
        chart_box = ttk.Combobox(options, textvariable=self.chart_type, values=list(config.CHART_TYPES), state="readonly", width=8)
        chart_box.grid(row=0, column=1, padx=5)
        chart_box.bind("<<ComboboxSelected>>", lambda e: self._on_presentation_change())
        ttk.Label(options, text="Compare year:").grid(row=1, column=0, padx=5, pady=2, sticky="w")
        self.compare_year = tk.StringVar(value=str(selection.compare_year))
        self.year_dropdown = ttk.Combobox(options, textvariable=self.compare_year, state="readonly", width=8)
        self.year_dropdown.grid(row=1, column=1, padx=5)
        self.year_dropdown.bind("<<ComboboxSelected>>", lambda e: self._on_presentation_change())
        ttk.Label(options, text="Table:").grid(row=2, column=0, padx=5, pady=2, sticky="w")
        self.table_layout = tk.StringVar(value=next(iter(TABLE_LAYOUTS)))
        layout_box = ttk.Combobox(options, textvariable=self.table_layout, values=list(TABLE_LAYOUTS), state="readonly", width=18)
        layout_box.grid(row=2, column=1, padx=5)
        layout_box.bind("<<ComboboxSelected>>", lambda e: self._refresh_views())
        ttk.Button(options, text="Export CSV", command=self._export_csv).grid(row=3, column=0, columnspan=2, pady=5)

    def _build_views(self) -> None:
        self.notebook = ttk.Notebook(self)
        self.notebook.pack(fill="both", expand=True, padx=10, pady=5)
        self.tabs = {mode: ttk.Frame(self.notebook) for mode in config.DISPLAY_MODES}
        for mode, frame in self.tabs.items():
            self.notebook.add(frame, text=mode.replace("-", " ").title())
        self.notebook.bind("<<NotebookTabChanged>>", lambda e: self._on_tab_change())

        self.fig, self.ax, self.canvas = self._make_chart(self.tabs["visualization"], (7, 4))
        self.table = self._make_table(self.tabs["table"])

        side = self.tabs["side-by-side"]
        left = ttk.Frame(side)
        left.pack(side="left", fill="both", expand=True)
        right = ttk.Frame(side)
        right.pack(side="left", fill="both", expand=True)
        self.side_fig, self.side_ax, self.side_canvas = self._make_chart(left, (5, 3))
        self.side_table = self._make_table(right)

        self.notebook.select(self.tabs[self.state_model.selection.display_mode])

    def _make_chart(self, parent, size):
        fig = Figure(figsize=size)
        ax = fig.add_subplot(111)
        canvas = FigureCanvasTkAgg(fig, master=parent)
        canvas.get_tk_widget().pack(fill="both", expand=True)
        return fig, ax, canvas

    def _make_table(self, parent) -> ttk.Treeview:
        frame = ttk.Frame(parent)
        frame.pack(fill="both", expand=True)
        tree = ttk.Treeview(frame, show="headings", height=12)
        tree.pack(side="left", fill="both", expand=True)
        scrollbar = ttk.Scrollbar(frame, orient="vertical", command=tree.yview)
        tree.configure(yscrollcommand=scrollbar.set)
        scrollbar.pack(side="right", fill="y")
        return tree

    # -- thread marshalling ---------------------------------------------

    def _update_status(self, text: str) -> None:
        if threading.current_thread() is threading.main_thread():
            self._status_var.set(text)
        else:
            # Marshal updates to the Tk event loop to avoid cross-thread Tkinter access
            self.after(0, lambda: self._status_var.set(text))

    def _load_lookups_async(self) -> None:
        threading.Thread(target=self._load_countries, daemon=True).start()
        threading.Thread(target=self._load_series, daemon=True).start()

    def _load_countries(self) -> None:
        try:
            countries = self.source.fetch_countries()
        except WBExplorerError as exc:
            message = f"Error loading countries: {exc}"
            logger.error(message)
            self.after(0, lambda: self.country_error.config(text=message, foreground="red"))
            return
        self.after(0, lambda: self._on_countries_loaded(countries))

    def _load_series(self) -> None:
        try:
            series = self.source.fetch_series()
        except WBExplorerError as exc:
            message = f"Error loading series: {exc}"
            logger.error(message)
            self.after(0, lambda: self.series_error.config(text=message, foreground="red"))
            return
        self.after(0, lambda: self._on_series_loaded(series))

    def _request_data(self) -> None:
        tag, selection = self.state_model.begin_fetch()
        if not selection.has_data_request:
            self._refresh_views()
            return
        self._update_status(f"Loading {selection.series} for {len(selection.countries)} countries...")
        threading.Thread(target=self._fetch_data, args=(tag, selection), daemon=True).start()

    def _fetch_data(self, tag: int, selection) -> None:
        try:
            results = self.source.fetch_multi_country(
                selection.countries_to_fetch(), selection.series, self._country_names
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception("Fetching %s failed", selection.series)
            message = f"Error loading data: {exc}"
            self.after(0, lambda: self._on_data_failed(tag, message))
            return
        self.after(0, lambda: self._on_data(tag, results))

    def _on_data_failed(self, tag: int, message: str) -> None:
        if not self.state_model.apply_results(tag, []):
            return
        self._update_status(message)
        self._refresh_views()

    def _on_data(self, tag: int, results: List[CountrySeriesData]) -> None:
        if not self.state_model.apply_results(tag, results):
            logger.debug("Discarding stale results for generation %s", tag)
            return
        failed = [item.country.code for item in results if item.error]
        if failed:
            self._update_status(f"No data for: {', '.join(failed)}")
        else:
            self._update_status("Ready")
        self._refresh_year_options()
        self._refresh_views()

    def _on_close(self) -> None:
        # Let a background cache refresh finish its request before exiting.
        self.source.cache.wait_for_refreshes(timeout=config.REQUEST_TIMEOUT)
        self.destroy()

    # -- selector callbacks ---------------------------------------------

    def _on_countries_loaded(self, countries: List[Country]) -> None:
        self._countries = countries
        self._country_names = {c.code: c for c in countries}
        self.country_error.config(text=f"{len(countries)} countries", foreground="gray")
        self._populate_countries()
        # Results fetched before the names arrived only carry codes.
        self.state_model.relabel(self._country_names)
        self._refresh_views()
        self._request_data()

    def _on_series_loaded(self, series: List[Series]) -> None:
        self._series = sorted(series, key=lambda s: s.name.lower())
        self.series_error.config(text=f"{len(series)} series", foreground="gray")
        self._populate_series()

    def _populate_countries(self) -> None:
        needle = self.country_filter.get().lower()
        self._visible_countries = [c for c in self._countries if needle in c.name.lower()]
        self.country_list.delete(0, "end")
        for idx, country in enumerate(self._visible_countries):
            self.country_list.insert("end", f"{country.name} ({country.code})")
            if country.code in self._selected_codes:
                self.country_list.selection_set(idx)

    def _populate_series(self) -> None:
        needle = self.series_filter.get().lower()
        self._visible_series = [s for s in self._series if needle in s.name.lower()]
        self.series_dropdown.config(values=[s.name for s in self._visible_series])
        current = self.state_model.selection.series
        match = next((s for s in self._series if s.code == current), None)
        if match:
            self.series_var.set(match.name)

    def _on_country_pick(self) -> None:
        picked = {self._visible_countries[i].code for i in self.country_list.curselection()}
        visible = {c.code for c in self._visible_countries}
        # Keep selections hidden by the current filter.
        self._selected_codes = [c for c in self._selected_codes if c not in visible or c in picked]
        self._selected_codes += [c.code for c in self._visible_countries if c.code in picked and c.code not in self._selected_codes]
        self.state_model.update(countries=self._selected_codes)
        self._request_data()

    def _on_series_pick(self) -> None:
        index = self.series_dropdown.current()
        if index < 0:
            return
        self.state_model.update(series=self._visible_series[index].code)
        self._request_data()

    def _on_presentation_change(self) -> None:
        year = self.compare_year.get()
        self.state_model.update(
            chart_type=self.chart_type.get(),
            compare_year=int(year) if year.isdigit() else self.state_model.selection.compare_year,
        )
        self._refresh_views()

    def _on_tab_change(self) -> None:
        index = self.notebook.index(self.notebook.select())
        self.state_model.update(display_mode=config.DISPLAY_MODES[index])

    # -- rendering ------------------------------------------------------

    def _refresh_year_options(self) -> None:
        results = self.state_model.results or []
        years = views.available_years(results)
        self.year_dropdown.config(values=[str(y) for y in years])
        year = views.resolve_compare_year(self.state_model.selection.compare_year, years)
        if year is not None:
            self.compare_year.set(str(year))
            self.state_model.update(compare_year=year)

    def _series_title(self) -> str:
        code = self.state_model.selection.series
        match = next((s for s in self._series if s.code == code), None)
        return match.name if match else code

    def _refresh_views(self) -> None:
        results = self.state_model.results
        for ax, canvas in ((self.ax, self.canvas), (self.side_ax, self.side_canvas)):
            self._draw_chart(ax, results)
            canvas.draw()
        header, rows = TABLE_LAYOUTS[self.table_layout.get()](results or [])
        self._fill_table(self.table, header, rows)
        self._fill_table(self.side_table, *views.summary_table(results or []))

    def _draw_chart(self, ax, results: Optional[List[CountrySeriesData]]) -> None:
        ax.clear()
        selection = self.state_model.selection
        if not selection.has_data_request:
            ax.set_title("Select countries and a data series to start exploring.")
            return
        if results is None:
            ax.set_title("Loading data...")
            return
        if selection.chart_type == "bar":
            year = views.resolve_compare_year(selection.compare_year, views.available_years(results))
            bars = views.bar_values(results, year)
            ax.bar([name for name, _ in bars], [value if value is not None else 0 for _, value in bars])
            ax.set_title(f"{self._series_title()} ({year if year is not None else 'no data'})")
            ax.tick_params(axis="x", labelrotation=30)
            return
        years, lines = views.chart_series(results)
        for name, values in lines:
            ax.plot(years, [v if v is not None else float("nan") for v in values], label=name)
        if lines:
            ax.legend()
        ax.set_title(self._series_title())

    def _fill_table(self, tree: ttk.Treeview, header: Sequence[str], rows) -> None:
        tree.delete(*tree.get_children())
        tree.configure(columns=list(header))
        for col in header:
            tree.heading(col, text=col)
            tree.column(col, width=100, anchor="w")
        for row in rows:
            tree.insert("", "end", values=["" if v is None else v for v in row])

    def _export_csv(self) -> None:
        results = self.state_model.results
        if not results:
            messagebox.showinfo("Export", "Nothing to export yet.")
            return
        file_path = filedialog.asksaveasfilename(defaultextension=".csv", filetypes=[("CSV", "*.csv")])
        if not file_path:
            return
        header, rows = TABLE_LAYOUTS[self.table_layout.get()](results)
        with open(file_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(header)
            writer.writerows(rows)
        messagebox.showinfo("Export", f"Saved to {file_path}")
