from __future__ import annotations

import threading
import time

import pytest
from conftest import FakeGeocoder

from mobile_checker.checker.orchestrator import NOT_IN_DATASET_NOTE, Checker
from mobile_checker.common.errors import TransportError, UnavailableError

ROWS = {
    "SW1A1AA": {"postcode": "SW1A1AA", "ee_4g": "1.0", "o2_4g": "0.95", "ee_5g": "0.6"},
    "EC1A1BB": {"postcode": "EC1A1BB", "ee_4g": "0.3", "o2_4g": "0.8"},
}


class FakeDataset:
    def __init__(self, rows=None, error: Exception | None = None, delays: dict[str, float] | None = None):
        self.rows = ROWS if rows is None else rows
        self.error = error
        self.delays = delays or {}
        self.calls: list[str] = []
        self.lock = threading.Lock()

    def query_postcode(self, key):
        with self.lock:
            self.calls.append(key)
        time.sleep(self.delays.get(key, 0.0))
        if self.error is not None:
            raise self.error
        return self.rows.get(key)

    def is_ready(self):
        return True


def test_check_hit_attaches_summary():
    checker = Checker(FakeGeocoder(), FakeDataset())

    result = checker.check("sw1a 1aa")

    assert result.postcode == "SW1A1AA"
    assert result.valid
    assert result.geographic.region == "London"
    assert result.mobile.overall.four_g_count == 2
    assert result.mobile.overall.five_g_count == 1
    assert result.error is None and result.note is None


def test_check_geocode_failure_never_queries_dataset():
    dataset = FakeDataset()
    checker = Checker(FakeGeocoder(invalid={"ZZ999ZZ"}), dataset)

    result = checker.check("zz99 9zz")

    assert not result.valid
    assert result.mobile is None
    assert result.geographic is None
    assert result.error.startswith("Postcode lookup failed:")
    assert dataset.calls == []


def test_check_transport_failure_is_invalid_result():
    dataset = FakeDataset()
    checker = Checker(FakeGeocoder(error=TransportError("timed out")), dataset)

    result = checker.check("SW1A1AA")

    assert not result.valid
    assert "timed out" in result.error
    assert dataset.calls == []


def test_check_not_in_dataset_adds_note_and_stays_valid():
    checker = Checker(FakeGeocoder(), FakeDataset())

    result = checker.check("LS1 1AA")

    assert result.valid
    assert result.mobile is None
    assert result.note == NOT_IN_DATASET_NOTE


def test_check_dataset_unavailable_adds_note():
    checker = Checker(FakeGeocoder(), FakeDataset(error=UnavailableError("database not found, run 'setup' first")))

    result = checker.check("SW1A1AA")

    assert result.valid
    assert result.mobile is None
    assert result.note.startswith("Mobile data unavailable:")


def test_check_multiple_preserves_input_order_under_skewed_latency():
    delays = {"SW1A1AA": 0.3, "EC1A1BB": 0.0, "LS11AA": 0.15}
    checker = Checker(FakeGeocoder(), FakeDataset(delays=delays))

    results = checker.check_multiple(["SW1A1AA", "EC1A1BB", "LS11AA"])

    assert [result.postcode for result in results] == ["SW1A1AA", "EC1A1BB", "LS11AA"]
    assert results[0].mobile is not None
    assert results[2].note == NOT_IN_DATASET_NOTE


def test_check_multiple_runs_items_concurrently():
    postcodes = ["SW1A1AA", "EC1A1BB", "LS11AA", "M11AA"]
    delays = {key: 0.3 for key in postcodes}
    checker = Checker(FakeGeocoder(), FakeDataset(delays=delays))

    started = time.monotonic()
    results = checker.check_multiple(postcodes)

    assert len(results) == 4
    assert time.monotonic() - started < 0.3 * len(postcodes)


def test_check_multiple_isolates_item_failures():
    class ExplodingGeocoder(FakeGeocoder):
        def lookup(self, postcode):
            if postcode == "BOOM":
                raise RuntimeError("unexpected")
            return super().lookup(postcode)

    checker = Checker(ExplodingGeocoder(invalid={"ZZ999ZZ"}), FakeDataset())

    results = checker.check_multiple(["SW1A1AA", "BOOM", "ZZ99 9ZZ"])

    assert [result.postcode for result in results] == ["SW1A1AA", "BOOM", "ZZ999ZZ"]
    assert results[0].valid
    assert not results[1].valid and "unexpected" in results[1].error
    assert not results[2].valid


def test_check_multiple_empty_batch():
    assert Checker(FakeGeocoder(), FakeDataset()).check_multiple([]) == []


def test_result_to_dict_omits_empty_optionals():
    checker = Checker(FakeGeocoder(invalid={"ZZ999ZZ"}), FakeDataset())

    invalid = checker.check("ZZ999ZZ").to_dict()
    hit = checker.check("SW1A1AA").to_dict()

    assert set(invalid) == {"postcode", "valid", "error"}
    assert set(hit) == {"postcode", "valid", "geographic", "mobile"}
    assert [op["name"] for op in hit["mobile"]["operators"]] == ["EE", "O2", "Three", "Vodafone"]
    assert hit["mobile"]["overall"]["four_g_count"] == 2


@pytest.mark.parametrize("postcode", ["sw1a 1aa", "SW1A1AA", " Sw1A  1aA "])
def test_check_normalises_before_querying(postcode):
    dataset = FakeDataset()
    Checker(FakeGeocoder(), dataset).check(postcode)

    assert dataset.calls == ["SW1A1AA"]
