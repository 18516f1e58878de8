import unittest
from unittest.mock import MagicMock, patch

import requests

from wbexplorer.cache import QueryCache
from wbexplorer.config import config
from wbexplorer.errors import FetchError
from wbexplorer.sources import base
from wbexplorer.sources.base import RawFetchResult, fetch_text
from wbexplorer.sources.static_host import StaticHostSource, parse_data_csv, parse_lookup_csv
from wbexplorer.storage.metadata import Country

BASE_URL = "https://data.example.org/split"


def ok_result(url, text):
    return RawFetchResult(url=url, status_code=200, ok=True, error=None, duration_ms=1, payload_text=text,
                          fetched_at_utc="2024-01-01T00:00:00+00:00")


def failed_result(url, status=404):
    return RawFetchResult(url=url, status_code=status, ok=False, error=f"HTTP {status}: Not Found", duration_ms=1,
                          payload_text=None, fetched_at_utc="2024-01-01T00:00:00+00:00")


def fake_response(status, text=""):
    resp = MagicMock()
    resp.status_code = status
    resp.ok = status < 400
    resp.reason = "OK" if status < 400 else "Error"
    resp.text = text
    return resp


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class ParserTests(unittest.TestCase):
    def test_parse_data_csv_sorts_and_handles_missing(self) -> None:
        text = "Year,Value\n1962,3.5\n1960,\n1961,abc\n,7\n"
        self.assertEqual(parse_data_csv(text), [(1960, None), (1962, 3.5)])

    def test_parse_data_csv_skips_non_decimal_years(self) -> None:
        text = "Year,Value\n\u00b2,5\n1_999,4\n2001,3\n"
        self.assertEqual(parse_data_csv(text), [(2001, 3.0)])

    def test_parse_lookup_csv_handles_quotes(self) -> None:
        text = 'Series Code,Series Name\nSP.POP.TOTL,"Population, total"\n,Blank\n'
        self.assertEqual(parse_lookup_csv(text, "Series Code", "Series Name"), [("SP.POP.TOTL", "Population, total")])


class DoRequestTests(unittest.TestCase):
    def setUp(self) -> None:
        patcher = patch.object(config, "RETRY_BACKOFF_SECONDS", 0)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_success_returns_body(self) -> None:
        with patch.object(base.requests, "get", return_value=fake_response(200, "Year,Value\n")) as get:
            result = fetch_text(f"{BASE_URL}/x.csv")
        self.assertTrue(result.ok)
        self.assertEqual(result.payload_text, "Year,Value\n")
        self.assertEqual(get.call_args.kwargs["headers"]["User-Agent"], config.USER_AGENT)

    def test_not_found_is_not_retried(self) -> None:
        with patch.object(base.requests, "get", return_value=fake_response(404)) as get:
            result = fetch_text(f"{BASE_URL}/x.csv")
        self.assertFalse(result.ok)
        self.assertEqual(result.status_code, 404)
        self.assertEqual(get.call_count, 1)

    def test_connection_errors_retry_a_bounded_number_of_times(self) -> None:
        with patch.object(base.requests, "get", side_effect=requests.ConnectionError("boom")) as get:
            result = fetch_text(f"{BASE_URL}/x.csv")
        self.assertFalse(result.ok)
        self.assertIsNone(result.status_code)
        self.assertEqual(get.call_count, config.MAX_RETRIES + 1)

    def test_server_error_then_success(self) -> None:
        responses = [fake_response(503), fake_response(200, "ok")]
        with patch.object(base.requests, "get", side_effect=responses) as get:
            result = fetch_text(f"{BASE_URL}/x.csv")
        self.assertTrue(result.ok)
        self.assertEqual(get.call_count, 2)


class StaticHostSourceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.source = StaticHostSource(BASE_URL + "/", QueryCache(stale_seconds=60, gc_seconds=600))
        self.files = {
            "_countries.csv": "Country Code,Country Name\nCHN,China\nDEU,Germany\nUSA,United States\n",
            "_series.csv": "Series Code,Series Name\nNY.GDP.MKTP.CD,GDP (current US$)\n",
            "_index.csv": "Country Code,Series Code\nCHN,NY.GDP.MKTP.CD\nUSA,NY.GDP.MKTP.CD\n",
            "usa-nygdpmktpcd.csv": "Year,Value\n2021,23.3\n2020,21.0\n",
            "deu-nygdpmktpcd.csv": "Year,Value\n2020,3.9\n2021,\n",
        }
        self.requested = []

        def fake_fetch(url):
            self.requested.append(url)
            filename = url.rsplit("/", 1)[-1]
            if filename in self.files:
                return ok_result(url, self.files[filename])
            return failed_result(url)

        patcher = patch("wbexplorer.sources.static_host.fetch_text", side_effect=fake_fetch)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_url_for_strips_trailing_slash(self) -> None:
        self.assertEqual(self.source.url_for("_index.csv"), f"{BASE_URL}/_index.csv")

    def test_lookup_tables(self) -> None:
        countries = self.source.fetch_countries()
        self.assertEqual([c.code for c in countries], ["CHN", "DEU", "USA"])
        self.assertEqual(self.source.fetch_series()[0].name, "GDP (current US$)")

    def test_lookup_tables_use_longer_windows(self) -> None:
        clock = FakeClock()
        source = StaticHostSource(BASE_URL, QueryCache(stale_seconds=60, gc_seconds=600, clock=clock))
        source.fetch_countries()
        source.fetch_country_series("USA", "NY.GDP.MKTP.CD")
        clock.now = config.LOOKUP_CACHE_STALE_SECONDS - 1
        source.fetch_countries()
        source.fetch_country_series("USA", "NY.GDP.MKTP.CD")
        self.assertEqual(self.requested.count(f"{BASE_URL}/_countries.csv"), 1)
        self.assertEqual(self.requested.count(f"{BASE_URL}/usa-nygdpmktpcd.csv"), 2)

    def test_country_series_is_cached(self) -> None:
        first = self.source.fetch_country_series("USA", "NY.GDP.MKTP.CD")
        second = self.source.fetch_country_series("USA", "NY.GDP.MKTP.CD")
        self.assertEqual(first, [(2020, 21.0), (2021, 23.3)])
        self.assertEqual(second, first)
        self.assertEqual(self.requested.count(f"{BASE_URL}/usa-nygdpmktpcd.csv"), 1)

    def test_missing_file_raises_fetch_error(self) -> None:
        with self.assertRaises(FetchError) as ctx:
            self.source.fetch_country_series("CHN", "NY.GDP.MKTP.CD")
        self.assertEqual(ctx.exception.status_code, 404)

    def test_multi_country_partial_success(self) -> None:
        names = {"USA": Country("USA", "United States"), "DEU": Country("DEU", "Germany")}
        results = self.source.fetch_multi_country(["USA", "CHN", "DEU"], "NY.GDP.MKTP.CD", names)

        self.assertEqual([r.country.code for r in results], ["USA", "CHN", "DEU"])
        usa, chn, deu = results
        self.assertEqual(usa.country.name, "United States")
        self.assertEqual(usa.data, [(2020, 21.0), (2021, 23.3)])
        self.assertIsNone(usa.error)
        self.assertEqual(chn.data, [])
        self.assertIsNotNone(chn.error)
        self.assertEqual(chn.country, Country("CHN", "CHN"))
        self.assertEqual(deu.data, [(2020, 3.9), (2021, None)])

    def test_multi_country_survives_unreadable_year(self) -> None:
        self.files["deu-x.csv"] = "Year,Value\n\u00b2,5\n2020,1\n"
        self.files["usa-x.csv"] = "Year,Value\n2020,2\n"
        results = self.source.fetch_multi_country(["USA", "DEU"], "X")
        self.assertEqual([r.data for r in results], [[(2020, 2.0)], [(2020, 1.0)]])

    def test_multi_country_survives_unparseable_file(self) -> None:
        self.files["deu-x.csv"] = "Year,Value\n2020,1\n"
        with patch("wbexplorer.sources.static_host.parse_data_csv", side_effect=ValueError("bad year")):
            results = self.source.fetch_multi_country(["DEU"], "X")
        self.assertEqual(results[0].data, [])
        self.assertIn("bad year", results[0].error)

    def test_multi_country_without_countries(self) -> None:
        self.assertEqual(self.source.fetch_multi_country([], "NY.GDP.MKTP.CD"), [])

    def test_failures_are_not_cached(self) -> None:
        with self.assertRaises(FetchError):
            self.source.fetch_country_series("CHN", "NY.GDP.MKTP.CD")
        self.files["chn-nygdpmktpcd.csv"] = "Year,Value\n2020,14.7\n"
        self.assertEqual(self.source.fetch_country_series("CHN", "NY.GDP.MKTP.CD"), [(2020, 14.7)])


if __name__ == "__main__":
    unittest.main()
