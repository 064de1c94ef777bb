"""Tests for payment intent resolution."""

import pytest

from fluxos_subscriptions.mock import invoice_factory
from fluxos_subscriptions.models import InvoicePayment
from fluxos_subscriptions.resolver import PaymentIntentResolver, extract_payment_intent_id


class TestExtractPaymentIntentId:
    """Tests for parsing the confirmation secret."""

    def test_valid_secret(self):
        assert extract_payment_intent_id("pi_1AbC_secret_9xYz") == "pi_1AbC"

    def test_wrong_prefix(self):
        assert extract_payment_intent_id("sub_1AbC_secret_9xYz") is None

    def test_no_delimiter(self):
        assert extract_payment_intent_id("garbage") is None

    @pytest.mark.parametrize("value", [None, ""])
    def test_empty(self, value):
        assert extract_payment_intent_id(value) is None

    def test_delimiter_at_start(self):
        assert extract_payment_intent_id("_secret_9xYz") is None

    def test_prefix_only(self):
        assert extract_payment_intent_id("pi__secret_9xYz") is None

    def test_first_delimiter_wins(self):
        assert extract_payment_intent_id("pi_abc_secret_def_secret_ghi") == "pi_abc"

    @pytest.mark.parametrize(
        "payment_intent_id",
        ["pi_3MtwBwLkdIwHu7ix28a3tqPa", "pi_1", "pi_A_b_C"],
    )
    def test_decomposes_to_prefix(self, payment_intent_id):
        secret = f"{payment_intent_id}_secret_YrKJUKribcBjcG8HVhfZluoGH"
        assert extract_payment_intent_id(secret) == payment_intent_id


class TestPaymentIntentResolver:
    """Tests for the two-tier fallback."""

    def test_prefers_expanded_payments(self):
        invoice = invoice_factory(
            client_secret="pi_fromsecret_secret_abc",
            payments=[InvoicePayment(id="inpay_1", payment_intent_id="pi_frompayments")],
        )
        assert PaymentIntentResolver().resolve(invoice) == "pi_frompayments"

    def test_falls_back_to_secret_when_not_expanded(self):
        invoice = invoice_factory(client_secret="pi_fromsecret_secret_abc", payments=None)
        assert PaymentIntentResolver().resolve(invoice) == "pi_fromsecret"

    def test_falls_back_when_payments_empty(self):
        invoice = invoice_factory(client_secret="pi_fromsecret_secret_abc", payments=[])
        assert PaymentIntentResolver().resolve(invoice) == "pi_fromsecret"

    def test_falls_back_when_first_payment_has_no_intent(self):
        invoice = invoice_factory(
            client_secret="pi_fromsecret_secret_abc",
            payments=[InvoicePayment(id="inpay_1", payment_intent_id=None)],
        )
        assert PaymentIntentResolver().resolve(invoice) == "pi_fromsecret"

    def test_unresolvable(self):
        invoice = invoice_factory(client_secret=None, payments=None)
        assert PaymentIntentResolver().resolve(invoice) is None
