"""
Tests for Tijarati

Test strategy:
1. Unit tests for individual components (models, validators)
2. Integration tests for flows (in-memory SQLite, fake clock, fake biometrics)
3. No real API calls in tests (use mocks)
"""

import json

import pytest

from tijarati.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from tijarati.models.bridge import (
    ImportPayload,
    RequestEnvelope,
    ResponseEnvelope,
)
from tijarati.models.ledger import (
    LedgerSummary,
    Partner,
    Snapshot,
    Transaction,
    coerce_record_list,
)
from tijarati.validation import RecordValidator, ValidationError, to_latin_digits


class TestTransactionModel:
    """Tests for the Transaction record."""

    def test_minimal_transaction_gets_defaults(self):
        """Only the id is required."""
        tx = Transaction.model_validate({"id": "t1"})
        assert tx.quantity == 1.0
        assert tx.amount == 0.0
        assert tx.pricing_mode == "unit"
        assert tx.currency == "MAD"
        assert tx.reminder_id is None
        assert tx.installments == []
        assert tx.created_at > 0

    def test_id_is_stripped(self):
        tx = Transaction.model_validate({"id": "  t1  "})
        assert tx.id == "t1"

    @pytest.mark.parametrize("payload", [{}, {"id": None}, {"id": "   "}])
    def test_missing_id_is_rejected(self, payload):
        """Transaction without a usable id is rejected."""
        with pytest.raises(ValueError, match="Transaction id is required"):
            Transaction.model_validate(payload)

    def test_base_amount_names_are_accepted(self):
        """The web bundle sends amountBase / unitPriceBase / paidAmountBase."""
        tx = Transaction.model_validate({
            "id": "t1",
            "amountBase": 30,
            "unitPriceBase": 15,
            "paidAmountBase": 10,
            "amount": 999,
        })
        assert tx.amount == 30
        assert tx.unit_price == 15
        assert tx.paid_amount == 10

    def test_wire_uses_plain_amount_names(self):
        """Responses carry amount / unitPrice / paidAmount, never the ...Base names."""
        wire = Transaction.model_validate({"id": "t1", "amountBase": 30}).to_wire()
        assert wire["amount"] == 30
        assert "amountBase" not in wire
        assert {"unitPrice", "paidAmount"} <= wire.keys()

    def test_corrupt_installments_become_empty(self):
        tx = Transaction.model_validate({"id": "t1", "installments": "{not json"})
        assert tx.installments == []

    def test_installments_json_text_is_parsed(self):
        tx = Transaction.model_validate({"id": "t1", "installments": '[{"amount": 5}]'})
        assert tx.installments == [{"amount": 5}]

    def test_blank_reminder_is_none(self):
        tx = Transaction.model_validate({"id": "t1", "reminderId": ""})
        assert tx.reminder_id is None

    def test_amounts_are_not_sanity_checked(self):
        """Overpaid and negative values are stored as given."""
        tx = Transaction.model_validate({"id": "t1", "amount": -5, "paidAmount": 100})
        assert tx.amount == -5
        assert tx.paid_amount == 100

    def test_to_wire_uses_camel_case(self):
        wire = Transaction.model_validate({
            "id": "t1",
            "unitPrice": 2,
            "isCredit": True,
            "clientName": "Ali",
        }).to_wire()
        assert wire["unitPrice"] == 2
        assert wire["isCredit"] is True
        assert wire["clientName"] == "Ali"
        assert "unit_price" not in wire
        assert "reminderId" in wire


class TestPartnerModel:
    """Tests for the Partner record."""

    def test_name_is_required(self):
        with pytest.raises(ValueError, match="Partner name is required"):
            Partner.model_validate({"percent": 10})

    def test_numeric_string_id_is_kept(self):
        assert Partner.model_validate({"id": "7", "name": "Sara"}).id == 7

    def test_non_numeric_id_falls_back_to_auto(self):
        assert Partner.model_validate({"id": "abc", "name": "Sara"}).id is None

    def test_structured_profit_schedule_is_stored_as_text(self):
        partner = Partner.model_validate({"name": "Sara", "profitSchedule": {"every": "month"}})
        assert json.loads(partner.profit_schedule) == {"every": "month"}

    def test_corrupt_payouts_become_empty(self):
        partner = Partner.model_validate({"name": "Sara", "payouts": "[oops"})
        assert partner.payouts == []


class TestRecordListCoercion:

    @pytest.mark.parametrize("value, expected", [
        ([1, 2], [1, 2]),
        ("[1, 2]", [1, 2]),
        ('{"a": 1}', []),
        ("", []),
        (None, []),
        (42, []),
    ])
    def test_coerce_record_list(self, value, expected):
        assert coerce_record_list(value) == expected


class TestLedgerSummary:
    """Tests for the figures handed to the assistant."""

    def test_summary_totals(self):
        transactions = [
            Transaction(id="1", type="sale", item="Bread", quantity=2, amount=10),
            Transaction(id="2", type="sale", item="bread", quantity=3, amount=15),
            Transaction(id="3", type="sale", item="Milk", quantity=1, amount=8,
                        is_credit=True, paid_amount=3),
            Transaction(id="4", type="purchase", item="Flour", amount=20),
        ]
        summary = LedgerSummary.from_transactions(transactions)

        assert summary.total_sales == 33
        assert summary.total_purchases == 20
        assert summary.net_profit == 13
        assert summary.pending_debts == 5
        assert summary.top_sale_items[0] == {"item": "bread", "qty": 5}

    def test_summary_wire_names(self):
        wire = LedgerSummary.from_transactions([]).to_wire()
        assert set(wire) == {
            "totalSales", "totalPurchases", "netProfit", "pendingDebts", "topSaleItems",
        }


class TestAuditModels:
    """Tests for audit event models."""

    def test_audit_event_creation(self):
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_SAVED,
            description="Test event",
        )
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_log_dict(self):
        event = AuditEventBuilder.transaction_deleted("t1", reminder_id="r1")
        log = event.to_log_dict()
        assert log["event_type"] == "transaction_deleted"
        assert log["entity_id"] == "t1"
        assert log["details"] == {"cancelled_reminder": "r1"}

    def test_clear_is_a_warning(self):
        assert AuditEventBuilder.data_cleared(2).severity == AuditSeverity.WARNING

    def test_unlock_failure_carries_reason(self):
        event = AuditEventBuilder.unlock_failed("pin", "PIN_WRONG")
        assert event.error_code == "PIN_WRONG"
        assert event.severity == AuditSeverity.WARNING


class TestBridgeModels:
    """Tests for request / response envelopes."""

    @pytest.mark.parametrize("raw_id, expected", [
        (None, None),
        ("", None),
        (0, None),
        (5, "5"),
        ("abc", "abc"),
    ])
    def test_request_id_normalization(self, raw_id, expected):
        envelope = RequestEnvelope.model_validate({"id": raw_id, "type": "GET_PARTNERS"})
        assert envelope.id == expected

    def test_response_escapes_line_separators(self):
        text = ResponseEnvelope(id="1", result={"item": "a\u2028b\u2029c"}).encode()
        assert "\u2028" not in text
        assert "\u2029" not in text
        assert "\\u2028" in text
        assert json.loads(text)["result"]["item"] == "a\u2028b\u2029c"

    def test_response_keeps_non_ascii(self):
        text = ResponseEnvelope(id="1", result={"item": "خبز"}).encode()
        assert "خبز" in text

    def test_import_payload_prefers_content(self):
        payload = ImportPayload.model_validate({
            "content": '{"transactions": [], "partners": [{"name": "A"}]}',
            "state": {"transactions": [{"id": "ignored"}]},
        })
        assert payload.snapshot_data()["partners"] == [{"name": "A"}]

    def test_import_payload_accepts_state(self):
        payload = ImportPayload.model_validate({"state": {"transactions": [{"id": "t1"}]}})
        assert payload.snapshot_data() == {"transactions": [{"id": "t1"}]}

    def test_import_payload_accepts_bare_snapshot(self):
        payload = ImportPayload.model_validate({"transactions": [{"id": "t1"}], "partners": []})
        assert payload.snapshot_data() == {"transactions": [{"id": "t1"}], "partners": []}

    def test_snapshot_round_trips_through_wire(self):
        snapshot = Snapshot(
            transactions=[Transaction(id="t1", item="bread")],
            partners=[Partner(id=3, name="Sara")],
        )
        again = Snapshot.model_validate(json.loads(json.dumps(snapshot.to_wire())))
        assert again == snapshot


class TestRecordValidator:
    """Tests for edge validation."""

    def test_none_payload_reports_missing_id(self):
        with pytest.raises(ValidationError, match="Transaction id is required"):
            RecordValidator().parse_transaction(None)

    def test_non_object_payload(self):
        with pytest.raises(ValidationError, match="Payload must be an object"):
            RecordValidator().parse_partner(["Sara"])

    def test_issues_are_collected(self):
        with pytest.raises(ValidationError) as exc:
            RecordValidator().parse_partner({"percent": "lots"})
        assert len(exc.value.issues) == 2
        assert str(exc.value) == "Partner name is required (+1 more)"

    def test_try_parse_returns_none(self):
        assert RecordValidator().try_parse(Transaction, {"item": "bread"}) is None


class TestDigitNormalization:

    @pytest.mark.parametrize("text, expected", [
        ("١٢٣", "123"),
        ("۴۵۶", "456"),
        ("Total: ٥٠ MAD", "Total: 50 MAD"),
        ("no digits", "no digits"),
        (None, ""),
        (42, "42"),
    ])
    def test_to_latin_digits(self, text, expected):
        assert to_latin_digits(text) == expected
