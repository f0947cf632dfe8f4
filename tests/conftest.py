#!/usr/bin/env python3
"""
Shared fixtures: canned ACS payloads and a mock Census API transport.
"""

from typing import Dict, List, Optional, Set

import httpx
import pandas as pd
import pytest

BASE_HEADER = ["NAME", "B19013_001E", "B17001_002E", "B17001_001E", "state"]
EDU_HEADER = [
    "B15003_001E",
    "B15003_022E",
    "B15003_023E",
    "B15003_024E",
    "B15003_025E",
    "state",
]


def base_payload(rows: List[List[str]]) -> list:
    return [BASE_HEADER, *rows]


def edu_payload(rows: List[List[str]]) -> list:
    return [EDU_HEADER, *rows]


@pytest.fixture
def base_rows():
    return [
        ["California", "80000", "5000", "40000", "06"],
        ["New York", "70000", "3000", "20000", "36"],
        ["Zero Denominator", "50000", "0", "0", "99"],
        ["No Income", "null", "100", "1000", "98"],
    ]


@pytest.fixture
def edu_rows():
    return [
        # 06: (200 + 100 + 50 + 50) / 1000 -> 40%
        ["1000", "200", "100", "50", "50", "06"],
        # 72 has no base record
        ["500", "50", "25", "0", "25", "72"],
    ]


class FakeCensusApi:
    """Serves canned tables and records which ones were requested."""

    def __init__(
        self,
        base: list,
        education: Optional[list] = None,
        *,
        failing_base_years: Optional[Set[int]] = None,
        education_status: int = 200,
    ):
        self.base = base
        self.education = education
        self.failing_base_years = failing_base_years or set()
        self.education_status = education_status
        self.requests: List[Dict[str, object]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        year = int(next(p for p in request.url.path.split("/") if p.isdigit()))
        variables = request.url.params["get"].split(",")
        kind = "base" if "NAME" in variables else "education"
        self.requests.append({"year": year, "kind": kind})

        if kind == "base":
            if year in self.failing_base_years:
                return httpx.Response(500, text="server error")
            return httpx.Response(200, json=self.base)

        if self.education_status != 200:
            return httpx.Response(self.education_status, text="unknown variable")
        if self.education is None:
            return httpx.Response(400, text="unknown variable")
        return httpx.Response(200, json=self.education)

    def years_requested(self, kind: str) -> List[int]:
        return sorted(r["year"] for r in self.requests if r["kind"] == kind)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def fake_api(base_rows, edu_rows):
    return FakeCensusApi(base_payload(base_rows), edu_payload(edu_rows))


@pytest.fixture
def store_records():
    """Flat records: 06 has 2010 and 2012, 36 has 2010-2012, given out of order."""
    return pd.DataFrame(
        [
            {"year": 2012, "fips": "06", "name": "California", "income": 64000.0, "poverty_rate": 15.9, "edu_pct": 31.4},
            {"year": 2011, "fips": "36", "name": "New York", "income": 56000.0, "poverty_rate": 14.5, "edu_pct": float("nan")},
            {"year": 2010, "fips": "06", "name": "California", "income": 60000.0, "poverty_rate": 13.7, "edu_pct": float("nan")},
            {"year": 2012, "fips": "36", "name": "New York", "income": 57000.0, "poverty_rate": 14.9, "edu_pct": 33.4},
            {"year": 2010, "fips": "36", "name": "New York", "income": 55000.0, "poverty_rate": 14.2, "edu_pct": float("nan")},
        ]
    )
