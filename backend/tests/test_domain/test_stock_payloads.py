"""
Unit tests for stock webhook payload parsing and stock rules

Author: TM3
Date: 2026-02-10
"""
import pytest

from app.core.exceptions import MalformedPayloadError
from app.domain.stock import DemandRow, needs_production
from app.domain.webhook import WebhookEnvelope, parse_stock_payload


class TestParseStockPayload:
    """Every known envelope normalizes to the same StockRecord shape"""

    def test_retorno_envelope_with_wrapped_items(self):
        payload = {
            "event": "estoque.updated",
            "retorno": {"estoques": [
                {"estoque": {"codigo": "SKU-A", "nome": "Prateleira", "estoqueAtual": 12,
                             "depositos": [{"id": 1, "saldo": 12}]}},
                {"estoque": {"codigo": "SKU-B", "estoqueAtual": 0}},
            ]},
        }

        records = parse_stock_payload(payload)

        assert [(r.sku, r.quantity) for r in records] == [("SKU-A", 12), ("SKU-B", 0)]
        assert records[0].name == "Prateleira"
        assert records[0].warehouses == [{"id": 1, "saldo": 12}]

    def test_data_list_envelope_with_bare_items(self):
        payload = {"event": "estoque.updated", "data": {"estoques": [
            {"sku": "SKU-C", "quantidade": 5},
        ]}}

        records = parse_stock_payload(payload)

        assert [(r.sku, r.quantity) for r in records] == [("SKU-C", 5)]

    def test_balance_envelope(self):
        payload = {"event": "estoque.updated", "data": {
            "produto": {"id": 987, "codigo": "SKU-D"},
            "deposito": {"id": 3, "saldoFisico": 4},
            "saldoFisicoTotal": 40,
            "saldoVirtualTotal": 38,
        }}

        records = parse_stock_payload(payload)

        assert len(records) == 1
        assert records[0].sku == "SKU-D"
        assert records[0].quantity == 40
        assert records[0].warehouses == [{"id": 3, "saldoFisico": 4}]

    def test_balance_envelope_without_code_uses_product_id(self):
        payload = {"event": "estoque.updated", "data": {"produto": {"id": 987}, "saldoFisicoTotal": 1}}

        assert parse_stock_payload(payload)[0].sku == "987"

    def test_single_item_envelope(self):
        payload = {"event": "estoque.updated", "data": {"codigo": "SKU-E", "estoqueAtual": 7}}

        records = parse_stock_payload(payload)

        assert [(r.sku, r.quantity) for r in records] == [("SKU-E", 7)]

    def test_items_without_sku_are_skipped(self):
        payload = {"retorno": {"estoques": [
            {"estoque": {"nome": "sem código", "estoqueAtual": 3}},
            {"estoque": {"codigo": "SKU-F", "estoqueAtual": 3}},
        ]}}

        records = parse_stock_payload(payload)

        assert [r.sku for r in records] == ["SKU-F"]

    def test_unrecognized_shape_raises(self):
        with pytest.raises(MalformedPayloadError):
            parse_stock_payload({"event": "estoque.updated", "data": {"nome": "no identifier"}})

    def test_invalid_item_in_list_raises(self):
        payload = {"data": {"estoques": [{"codigo": "SKU-G", "estoqueAtual": "muitos"}]}}

        with pytest.raises(MalformedPayloadError):
            parse_stock_payload(payload)


class TestWebhookEnvelope:

    @pytest.mark.parametrize("event,is_order,is_stock", [
        ("pedido_venda.created", True, False),
        ("pedidos.vendas.updated", True, False),
        ("order.deleted", True, False),
        ("estoque.updated", False, True),
        ("stock.updated", False, True),
        ("produto.created", False, False),
    ])
    def test_classification(self, event, is_order, is_stock):
        envelope = WebhookEnvelope(event=event, data={})

        assert envelope.is_order_event is is_order
        assert envelope.is_stock_event is is_stock

    def test_action_is_last_segment(self):
        assert WebhookEnvelope(event="pedidos.vendas.deleted", data={}).action == "deleted"


class TestNeedsProduction:
    """stock < min AND stock <= max, with min=10 and max=50"""

    @pytest.mark.parametrize("stock,expected", [
        (9, True),
        (10, False),
        (50, False),
        (51, False),
        (0, True),
    ])
    def test_boundaries(self, stock, expected):
        assert needs_production(stock, 10, 50) is expected

    def test_equal_to_max_still_eligible_when_below_min(self):
        # min above max: stock == max is still "not above maximum"
        assert needs_production(50, 60, 50) is True
        assert needs_production(51, 60, 50) is False

    @pytest.mark.parametrize("stock,stock_min,stock_max", [
        (None, 10, 50),
        (5, None, 50),
        (5, 10, None),
    ])
    def test_missing_values_are_not_flagged(self, stock, stock_min, stock_max):
        assert needs_production(stock, stock_min, stock_max) is False

    def test_demand_row_exposes_flag_and_deficit(self):
        row = DemandRow(sku="SKU-A", stock_level=4, stock_min=10, stock_max=50)

        assert row.needs_production is True
        assert row.deficit == 6
        assert row.to_dict()["needs_production"] is True
