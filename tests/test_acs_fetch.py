#!/usr/bin/env python3
"""
Unit tests for ACS fetching, indexing and the education join.
"""

import asyncio
import math

import httpx
import pandas as pd
import pytest

from acs_trends.acs_fetch import (
    AcsFetchError,
    fetch_all_years,
    fetch_year,
    filter_finite,
    index_base_table,
    index_education_table,
    join_education,
    raw_table_to_frame,
    url_for,
)
from conftest import FakeCensusApi, base_payload, edu_payload


def run_fetch_year(api: FakeCensusApi, year: int) -> pd.DataFrame:
    async def scenario():
        async with api.client() as client:
            return await fetch_year(client, year, api_key=None)

    return asyncio.run(scenario())


def run_fetch_all(api: FakeCensusApi, years):
    async def scenario():
        async with api.client() as client:
            return await fetch_all_years(years, client=client, api_key=None)

    return asyncio.run(scenario())


class TestUrlFor:
    def test_request_shape(self):
        url = url_for(2015, ["NAME", "B19013_001E"])
        assert url.endswith("/2015/acs/acs5?get=NAME,B19013_001E&for=state:*")

    def test_api_key_appended(self):
        assert url_for(2015, ["NAME"], api_key="abc").endswith("&key=abc")


class TestIndexing:
    def test_raw_table_requires_header(self):
        with pytest.raises(AcsFetchError):
            raw_table_to_frame({"error": "bad"})
        with pytest.raises(AcsFetchError):
            raw_table_to_frame([])

    def test_header_only_table_is_empty(self):
        frame = index_base_table(2014, base_payload([]))
        assert frame.empty

    def test_poverty_rate(self, base_rows):
        frame = index_base_table(2014, base_payload(base_rows)).set_index("fips")
        assert frame.loc["06", "poverty_rate"] == pytest.approx(12.5)
        assert frame.loc["36", "poverty_rate"] == pytest.approx(15.0)
        assert (frame["year"] == 2014).all()

    def test_zero_denominator_is_nan_not_error(self, base_rows):
        frame = index_base_table(2014, base_payload(base_rows)).set_index("fips")
        assert math.isnan(frame.loc["99", "poverty_rate"])

    def test_non_numeric_income_is_nan(self, base_rows):
        frame = index_base_table(2014, base_payload(base_rows)).set_index("fips")
        assert math.isnan(frame.loc["98", "income"])

    def test_education_share(self, edu_rows):
        education = index_education_table(edu_payload(edu_rows)).set_index("fips")
        assert education.loc["06", "edu_pct"] == pytest.approx(40.0)

    def test_missing_column_raises(self):
        with pytest.raises(KeyError):
            index_base_table(2014, [["NAME", "state"], ["Ohio", "39"]])


class TestJoin:
    def test_base_only_region_keeps_nan(self, base_rows, edu_rows):
        base = index_base_table(2014, base_payload(base_rows))
        joined = join_education(base, index_education_table(edu_payload(edu_rows)))
        joined = joined.set_index("fips")
        assert joined.loc["06", "edu_pct"] == pytest.approx(40.0)
        assert math.isnan(joined.loc["36", "edu_pct"])

    def test_education_only_region_dropped(self, base_rows, edu_rows):
        base = index_base_table(2014, base_payload(base_rows))
        joined = join_education(base, index_education_table(edu_payload(edu_rows)))
        assert "72" not in set(joined["fips"])
        assert len(joined) == len(base)

    def test_filter_finite(self, base_rows):
        kept = filter_finite(index_base_table(2014, base_payload(base_rows)))
        assert list(kept["fips"]) == ["06", "36"]
        assert kept["poverty_rate"].between(0, 100).all()


class TestFetchYear:
    def test_joined_and_filtered(self, fake_api):
        records = run_fetch_year(fake_api, 2015).set_index("fips")
        assert sorted(records.index) == ["06", "36"]
        assert records.loc["06", "edu_pct"] == pytest.approx(40.0)
        assert math.isnan(records.loc["36", "edu_pct"])

    def test_education_skipped_before_cutoff(self, fake_api):
        records = run_fetch_year(fake_api, 2011)
        assert fake_api.years_requested("education") == []
        assert records["edu_pct"].isna().all()

    def test_education_failure_ignored(self, base_rows):
        api = FakeCensusApi(base_payload(base_rows), None, education_status=400)
        records = run_fetch_year(api, 2016)
        assert api.years_requested("education") == [2016]
        assert len(records) == 2
        assert records["edu_pct"].isna().all()

    def test_malformed_education_ignored(self, base_rows):
        api = FakeCensusApi(base_payload(base_rows), [["state"], ["06"]])
        records = run_fetch_year(api, 2016)
        assert records["edu_pct"].isna().all()

    def test_base_failure_raises(self, base_rows):
        api = FakeCensusApi(base_payload(base_rows), failing_base_years={2013})
        with pytest.raises(AcsFetchError):
            run_fetch_year(api, 2013)


class TestFetchAllYears:
    def test_failed_year_isolated(self, base_rows, edu_rows):
        api = FakeCensusApi(
            base_payload(base_rows), edu_payload(edu_rows), failing_base_years={2011}
        )
        frames = run_fetch_all(api, [2010, 2011, 2012])
        assert [len(frame) for frame in frames] == [2, 0, 2]
        assert api.years_requested("base") == [2010, 2011, 2012]

    def test_transport_error_isolated(self, base_rows):
        def handler(request: httpx.Request) -> httpx.Response:
            if "/2010/" in request.url.path:
                raise httpx.ConnectError("boom", request=request)
            return httpx.Response(200, json=base_payload(base_rows))

        async def scenario():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                return await fetch_all_years([2010, 2011], client=client, api_key=None)

        frames = asyncio.run(scenario())
        assert frames[0].empty
        assert len(frames[1]) == 2
