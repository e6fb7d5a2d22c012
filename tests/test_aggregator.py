import pytest

from dns_module.aggregator import aggregate
from dns_module.dns_records import RecordBundle, RecordTypeResult, AddressResult, RECORD_TYPES


def test_slots_come_out_in_canonical_order_whatever_the_input_order():
    shuffled = [RecordTypeResult(t, (f"{t}-value",)) for t in reversed(RECORD_TYPES)]
    bundle = aggregate(shuffled, AddressResult((("1.2.3.4", 4),)), "example.com")

    assert [r.rtype for r in bundle] == list(RECORD_TYPES)
    assert bundle.get("mx").values == ("MX-value",)
    assert bundle.domain == "example.com"
    assert list(bundle.to_dict()) == ["domain", *RECORD_TYPES, "IPs"]


def test_missing_slot_is_filled_with_an_error():
    partial = [RecordTypeResult("A", ("1.2.3.4",)), RecordTypeResult("MX")]
    bundle = aggregate(partial, AddressResult(), "example.com")

    assert len(bundle.records) == 7
    assert bundle.get("MX").error is None
    assert bundle.get("SOA").values == ()
    assert bundle.get("SOA").error == "No result for SOA"


def test_first_result_for_a_type_wins_and_case_is_normalized():
    results = [
        RecordTypeResult("txt", (("first",),)),
        RecordTypeResult("TXT", (("second",),)),
    ]
    bundle = aggregate(results, AddressResult(), "example.com")
    assert bundle.get("TXT").values == (("first",),)
    assert bundle.get("TXT").rtype == "TXT"


def test_payload_shape_and_error_keys():
    results = [RecordTypeResult(t) for t in RECORD_TYPES if t != "NS"]
    results.append(RecordTypeResult("NS", (), "SERVFAIL"))
    results.append(RecordTypeResult("TXT", (("a", "b"),)))  # duplicate, ignored
    bundle = aggregate(results, AddressResult((), "ENOTFOUND"), "example.com")

    payload = bundle.to_dict()
    assert payload["NS"] == []
    assert payload["NS_error"] == "SERVFAIL"
    assert payload["IP_error"] == "ENOTFOUND"
    assert payload["IPs"] == []
    assert "MX_error" not in payload
    assert bundle.errors() == {"NS_error": "SERVFAIL", "IP_error": "ENOTFOUND"}


def test_bundle_rejects_incomplete_slots():
    with pytest.raises(ValueError):
        RecordBundle("example.com", (RecordTypeResult("A"),), AddressResult())


def test_bundle_is_immutable():
    bundle = aggregate([], AddressResult(), "example.com")
    with pytest.raises(AttributeError):
        bundle.domain = "other.com"
