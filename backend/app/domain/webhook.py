"""
Webhook Domain Models

Inbound Bling webhook envelope plus the stock payload shapes observed
from Bling. Stock payloads are parsed as a tagged union: each known
envelope schema is tried in priority order and the first one that
validates wins.

Author: TM3
Date: 2026-02-10
"""
import logging
from typing import Optional, List, Dict, Any, Union

from pydantic import BaseModel, Field, ConfigDict, ValidationError, model_validator

from app.core.exceptions import MalformedPayloadError
from app.domain.stock import StockRecord

logger = logging.getLogger(__name__)


ORDER_EVENT_PREFIXES = ("pedido_venda.", "pedidos.vendas.", "order.")
STOCK_EVENT_PREFIXES = ("estoque.", "stock.")

SUPPORTED_EVENTS = [
    "pedido_venda.created",
    "pedido_venda.updated",
    "pedido_venda.deleted",
    "estoque.created",
    "estoque.updated",
    "estoque.deleted",
]


class WebhookEnvelope(BaseModel):
    """{event, data} body sent by Bling"""

    event: str = Field(..., min_length=1)
    data: Dict[str, Any]

    model_config = ConfigDict(extra="allow")

    @property
    def action(self) -> str:
        return self.event.split(".")[-1]

    @property
    def is_order_event(self) -> bool:
        return self.event.startswith(ORDER_EVENT_PREFIXES)

    @property
    def is_stock_event(self) -> bool:
        return self.event.startswith(STOCK_EVENT_PREFIXES)


# ============================================================================
# Stock payload shapes
# ============================================================================

class StockItemPayload(BaseModel):
    """A stock item as Bling v1 sends it (codigo/nome/estoqueAtual/depositos)"""

    code: Optional[Union[str, int]] = Field(None, alias="codigo")
    sku: Optional[Union[str, int]] = None
    id: Optional[Union[str, int]] = None
    name: Optional[str] = Field(None, alias="nome")
    current_stock: Optional[float] = Field(None, alias="estoqueAtual")
    quantity: Optional[float] = Field(None, alias="quantidade")
    warehouses: List[Dict[str, Any]] = Field(default_factory=list, alias="depositos")

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    @property
    def identifier(self) -> Optional[str]:
        for value in (self.code, self.sku, self.id):
            if value not in (None, ""):
                return str(value)
        return None

    def to_record(self) -> Optional[StockRecord]:
        sku = self.identifier
        if not sku:
            return None
        quantity = self.current_stock if self.current_stock is not None else self.quantity
        return StockRecord(
            sku=sku,
            quantity=quantity if quantity is not None else 0,
            name=self.name or "",
            warehouses=self.warehouses,
        )


class _StockList(BaseModel):
    # items are either {"estoque": {...}} wrappers or bare stock items
    estoques: List[Dict[str, Any]]


class RetornoStockEnvelope(BaseModel):
    """Legacy v1 shape: {"retorno": {"estoques": [{"estoque": {...}}]}}"""

    retorno: _StockList

    def records(self) -> List[Optional[StockRecord]]:
        return [_unwrap(item).to_record() for item in self.retorno.estoques]


class DataListStockEnvelope(BaseModel):
    """{"data": {"estoques": [...]}}"""

    data: _StockList

    def records(self) -> List[Optional[StockRecord]]:
        return [_unwrap(item).to_record() for item in self.data.estoques]


class _ProductRef(BaseModel):
    id: Union[int, str]
    code: Optional[str] = Field(None, alias="codigo")

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class _BalancePayload(BaseModel):
    product: _ProductRef = Field(..., alias="produto")
    warehouse: Optional[Dict[str, Any]] = Field(None, alias="deposito")
    physical_total: Optional[float] = Field(None, alias="saldoFisicoTotal")
    virtual_total: Optional[float] = Field(None, alias="saldoVirtualTotal")
    quantity: Optional[float] = Field(None, alias="quantidade")

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class BalanceStockEnvelope(BaseModel):
    """v3 shape: {"data": {"produto": {...}, "deposito": {...}, "saldoFisicoTotal": n}}"""

    data: _BalancePayload

    def records(self) -> List[Optional[StockRecord]]:
        payload = self.data
        if payload.physical_total is not None:
            quantity = payload.physical_total
        elif payload.quantity is not None:
            quantity = payload.quantity
        else:
            quantity = 0
        return [StockRecord(
            sku=payload.product.code or str(payload.product.id),
            quantity=quantity,
            warehouses=[payload.warehouse] if payload.warehouse else [],
        )]


class SingleItemStockEnvelope(BaseModel):
    """{"data": {...one stock item...}}"""

    data: StockItemPayload

    @model_validator(mode="after")
    def _require_identifier(self):
        if not self.data.identifier:
            raise ValueError("stock item without codigo/sku/id")
        return self

    def records(self) -> List[Optional[StockRecord]]:
        return [self.data.to_record()]


STOCK_ENVELOPES = (
    RetornoStockEnvelope,
    DataListStockEnvelope,
    BalanceStockEnvelope,
    SingleItemStockEnvelope,
)


def _unwrap(item: Dict[str, Any]) -> StockItemPayload:
    inner = item.get("estoque")
    return StockItemPayload.model_validate(inner if isinstance(inner, dict) else item)


def parse_stock_payload(payload: Dict[str, Any]) -> List[StockRecord]:
    """
    Normalize a stock webhook body into StockRecords

    Items without any SKU/code inside a list envelope are skipped.

    Raises:
        MalformedPayloadError: when no known envelope matches
    """
    for envelope_cls in STOCK_ENVELOPES:
        try:
            envelope = envelope_cls.model_validate(payload)
        except ValidationError:
            continue

        try:
            parsed = envelope.records()
        except ValidationError as e:
            raise MalformedPayloadError(f"Invalid stock item in {envelope_cls.__name__}: {e}") from e

        records = []
        for record in parsed:
            if record is None:
                logger.warning("Stock item without SKU/code, skipping")
                continue
            records.append(record)
        logger.debug(f"Stock payload parsed as {envelope_cls.__name__}: {len(records)} record(s)")
        return records

    raise MalformedPayloadError("Unrecognized stock payload shape")
