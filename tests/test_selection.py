import threading
import unittest

from wbexplorer.sources.static_host import CountrySeriesData
from wbexplorer.storage.metadata import Country
from wbexplorer.ui.selection import (
    ExplorerState,
    Selection,
    available_years,
    bar_values,
    chart_series,
    long_table,
    resolve_compare_year,
    summary_table,
    wide_table_by_country,
    wide_table_by_year,
)


def results_for(series_code):
    return [
        CountrySeriesData(Country("USA", "United States"), series_code, [(2019, 1.0), (2020, 2.0), (2021, None)]),
        CountrySeriesData(Country("DEU", "Germany"), series_code, [(2020, 5.0), (2018, 4.0)]),
        CountrySeriesData(Country("CHN", "China"), series_code, [], error="HTTP 404"),
    ]


class ExplorerStateTests(unittest.TestCase):
    def test_countries_to_fetch_dedupes_in_order(self) -> None:
        selection = Selection(countries=("USA", "DEU", "USA"), series="X")
        self.assertEqual(selection.countries_to_fetch(), ("USA", "DEU"))

    def test_presentation_changes_keep_generation(self) -> None:
        state = ExplorerState(Selection(countries=("USA",), series="A"))
        tag = state.generation
        self.assertEqual(state.update(chart_type="bar", compare_year=2020, display_mode="table"), tag)
        self.assertEqual(state.selection.chart_type, "bar")

    def test_invalid_chart_type(self) -> None:
        with self.assertRaises(ValueError):
            ExplorerState().update(chart_type="pie")

    def test_stale_results_are_discarded(self) -> None:
        state = ExplorerState(Selection(countries=("USA", "DEU"), series="A"))
        tag_a, _ = state.begin_fetch()
        tag_b = state.update(series="B")
        self.assertNotEqual(tag_a, tag_b)

        self.assertTrue(state.apply_results(tag_b, results_for("B")))
        self.assertFalse(state.apply_results(tag_a, results_for("A")))
        self.assertEqual({r.series_code for r in state.results}, {"B"})

    def test_stale_results_discarded_when_fetches_race(self) -> None:
        state = ExplorerState(Selection(countries=("USA",), series="A"))
        a_may_finish = threading.Event()

        def run_fetch(tag, selection, gate=None):
            if gate is not None:
                gate.wait(5)
            state.apply_results(tag, results_for(selection.series))

        tag_a, sel_a = state.begin_fetch()
        fetch_a = threading.Thread(target=run_fetch, args=(tag_a, sel_a, a_may_finish))
        fetch_a.start()

        state.update(series="B")
        tag_b, sel_b = state.begin_fetch()
        fetch_b = threading.Thread(target=run_fetch, args=(tag_b, sel_b))
        fetch_b.start()
        fetch_b.join(5)
        a_may_finish.set()
        fetch_a.join(5)

        self.assertEqual(state.selection.series, "B")
        self.assertEqual({r.series_code for r in state.results}, {"B"})

    def test_changing_selection_clears_results(self) -> None:
        state = ExplorerState(Selection(countries=("USA",), series="A"))
        tag, _ = state.begin_fetch()
        state.apply_results(tag, results_for("A"))
        state.update(countries=["USA", "DEU"])
        self.assertIsNone(state.results)

    def test_relabel_names_results_and_drops_earlier_fetches(self) -> None:
        state = ExplorerState(Selection(countries=("USA", "DEU"), series="A"))
        first_tag, _ = state.begin_fetch()
        state.apply_results(first_tag, [CountrySeriesData(Country("USA", "USA"), "A", [(2020, 1.0)])])
        late_tag, _ = state.begin_fetch()

        new_tag = state.relabel({"USA": Country("USA", "United States")})

        self.assertNotEqual(new_tag, late_tag)
        self.assertEqual(state.results[0].country.name, "United States")
        self.assertEqual(state.results[0].data, [(2020, 1.0)])
        coded = [CountrySeriesData(Country("USA", "USA"), "A", [(2020, 1.0)])]
        self.assertFalse(state.apply_results(late_tag, coded))
        self.assertEqual(state.results[0].country.name, "United States")

    def test_relabel_without_results(self) -> None:
        state = ExplorerState(Selection(countries=("USA",), series="A"))
        tag = state.generation
        self.assertEqual(state.relabel({}), tag + 1)
        self.assertIsNone(state.results)


class ProjectionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.results = results_for("X")

    def test_available_years_most_recent_first(self) -> None:
        self.assertEqual(available_years(self.results), [2021, 2020, 2019, 2018])

    def test_resolve_compare_year(self) -> None:
        self.assertEqual(resolve_compare_year(2020, [2021, 2020]), 2020)
        self.assertEqual(resolve_compare_year(2023, [2021, 2020]), 2021)
        self.assertIsNone(resolve_compare_year(2023, []))

    def test_chart_series_aligns_values(self) -> None:
        years, lines = chart_series(self.results)
        self.assertEqual(years, [2018, 2019, 2020])
        self.assertEqual(
            lines,
            [
                ("United States", [None, 1.0, 2.0]),
                ("Germany", [4.0, None, 5.0]),
                ("China", [None, None, None]),
            ],
        )

    def test_bar_values(self) -> None:
        self.assertEqual(bar_values(self.results, 2020), [("United States", 2.0), ("Germany", 5.0), ("China", None)])

    def test_long_table(self) -> None:
        header, rows = long_table(self.results)
        self.assertEqual(header, ["Country", "Code", "Year", "Value"])
        self.assertEqual(rows[0], ["United States", "USA", 2019, 1.0])
        self.assertEqual(rows[3], ["Germany", "DEU", 2018, 4.0])
        self.assertEqual(len(rows), 5)

    def test_wide_tables(self) -> None:
        header, rows = wide_table_by_year(self.results)
        self.assertEqual(header, ["Year", "United States", "Germany", "China"])
        self.assertEqual(rows[0], [2018, None, 4.0, None])
        self.assertEqual(rows[-1], [2021, None, None, None])

        header, rows = wide_table_by_country(self.results)
        self.assertEqual(header, ["Country", "2018", "2019", "2020", "2021"])
        self.assertEqual(rows[1], ["Germany", 4.0, None, 5.0, None])

    def test_summary_table(self) -> None:
        _, rows = summary_table(self.results)
        self.assertEqual(rows[0], ["United States", 2.0, 2020, "2 years"])
        self.assertEqual(rows[2], ["China", "No data", "N/A", "0 years"])


if __name__ == "__main__":
    unittest.main()
