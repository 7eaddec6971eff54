from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.domain.models import Operation, ProvisioningRequest
from core.errors import FieldNotFound
from core.protocol import (
    SPG_URL_TAG,
    TRANSACTION_ID_TAG,
    build_request,
    encode,
    encode_request,
    extract_field,
    new_transaction_id,
    parse_response,
)


def test_new_transaction_id_is_non_negative_decimal():
    ids = {new_transaction_id() for _ in range(50)}

    assert all(value.isdigit() for value in ids)
    assert all(int(value) < 2**63 for value in ids)
    # 63 random bits: repeats in 50 draws would mean a broken generator.
    assert len(ids) == 50


def test_encoded_request_fields_are_extractable():
    body = encode_request("987654321", "5551234567", Operation.QUERY_GATEWAY, "Pixel 8").decode("utf-8")

    assert body.startswith('<?xml version="1.0" encoding="UTF-8"?><VMGVVMRequest>')
    assert extract_field(body, "transactionid") == "987654321"
    assert extract_field(body, "mdn") == "5551234567"
    assert extract_field(body, "operation") == "retrieveSPGURL"
    assert extract_field(body, "source") == "Device"
    assert extract_field(body, "devicemodel") == "Pixel 8"


def test_encode_request_escapes_markup_in_values():
    body = encode_request("1", "555", "retrieveSPGURL", "A&B <rev2>").decode("utf-8")

    assert "<devicemodel>A&amp;B &lt;rev2&gt;</devicemodel>" in body
    assert extract_field(body, "devicemodel") == "A&B <rev2>"


def test_encode_uses_request_model():
    request = build_request(subscriber_number="5550000000", device_model="Pixel", transaction_id="42")

    body = encode(request).decode("utf-8")

    assert request.operation is Operation.QUERY_GATEWAY
    assert extract_field(body, TRANSACTION_ID_TAG) == "42"
    assert extract_field(body, "mdn") == "5550000000"


def test_request_rejects_non_decimal_transaction_id():
    with pytest.raises(ValidationError):
        ProvisioningRequest(transaction_id="-1", subscriber_number="555", device_model="Pixel")


def test_extract_field_returns_first_occurrence_only():
    text = "<spgurl>http://a.example</spgurl><spgurl>http://b.example</spgurl>"

    assert extract_field(text, SPG_URL_TAG) == "http://a.example"


def test_extract_field_tolerates_surrounding_markup_and_newlines():
    text = """
    <VMGVVMResponse>
      <MessageHeader><transactionid>123</transactionid></MessageHeader>
      <MessageBody><spgurl>
    http://spg.example/x</spgurl></MessageBody>
    </VMGVVMResponse>
    """

    assert extract_field(text, TRANSACTION_ID_TAG) == "123"
    assert extract_field(text, SPG_URL_TAG).strip() == "http://spg.example/x"


def test_extract_field_missing_tag_raises():
    with pytest.raises(FieldNotFound) as excinfo:
        extract_field("<transactionid>1</transactionid>", SPG_URL_TAG)

    assert excinfo.value.tag == SPG_URL_TAG


def test_extract_field_is_idempotent():
    text = "<transactionid>7</transactionid><spgurl>http://spg.example/x</spgurl>"
    snapshot = str(text)

    first = extract_field(text, SPG_URL_TAG)
    second = extract_field(text, SPG_URL_TAG)

    assert first == second == "http://spg.example/x"
    assert text == snapshot


def test_parse_response_collects_requested_tags():
    response = parse_response(
        "<transactionid>123</transactionid><spgurl>http://spg.example/x</spgurl>",
        (SPG_URL_TAG, "missing"),
    )

    assert response.transaction_id == "123"
    assert response.fields == {SPG_URL_TAG: "http://spg.example/x"}


def test_parse_response_requires_transaction_id():
    with pytest.raises(FieldNotFound):
        parse_response("<spgurl>http://spg.example/x</spgurl>", (SPG_URL_TAG,))
