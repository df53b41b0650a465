"""
Stock Domain Models

StockSnapshot is the last known remote stock level for a SKU
(stockUpdates collection). StockThreshold holds the production
min/max per SKU (stockThresholds collection). DemandRow is the output
of the production demand aggregation.

Author: TM3
Date: 2026-02-10
"""
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, Field, ConfigDict


class StockRecord(BaseModel):
    """Normalized stock item, whatever envelope it arrived in"""

    sku: str
    quantity: float = 0
    name: str = ""
    warehouses: List[Dict[str, Any]] = Field(default_factory=list)


class StockSnapshot(BaseModel):
    """
    Most recently known remote stock for one SKU

    A snapshot can be marked stale (an order for the SKU arrived after
    the last stock reading) without being deleted.
    """

    sku: str
    name: str = Field("", alias="nome")
    current_stock: float = Field(0, alias="estoqueAtual")
    warehouses: List[Dict[str, Any]] = Field(default_factory=list, alias="depositos")
    last_event: Optional[str] = Field(None, alias="lastEvent")
    webhook_received_at: Optional[str] = Field(None, alias="webhookReceivedAt")
    updated_at: Optional[str] = Field(None, alias="updatedAt")
    stale: bool = False

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class StockThreshold(BaseModel):
    """Production thresholds for a SKU"""

    sku: str
    stock_min: Optional[float] = Field(None, alias="stockMin")
    stock_max: Optional[float] = Field(None, alias="stockMax")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class DemandRow(BaseModel):
    """One SKU of the production demand report"""

    sku: str
    description: str = ""
    order_count: int = Field(0, description="Distinct invoiced orders containing the SKU")
    total_quantity_sold: float = Field(0, description="Sum of line quantities")
    weekly_average: float = Field(0, description="total_quantity_sold / max(1, weeks in range)")
    stock_level: Optional[float] = None
    stock_min: Optional[float] = None
    stock_max: Optional[float] = None
    stock_stale: bool = False

    @property
    def needs_production(self) -> bool:
        return needs_production(self.stock_level, self.stock_min, self.stock_max)

    @property
    def deficit(self) -> float:
        return (self.stock_min or 0) - (self.stock_level or 0)

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump()
        data["needs_production"] = self.needs_production
        return data


def needs_production(stock_level: Optional[float], stock_min: Optional[float],
                     stock_max: Optional[float]) -> bool:
    """
    Below minimum and not above maximum.

    stock == min is NOT flagged; stock == max still is. Any missing value
    means the SKU cannot be judged and is not flagged.
    """
    if stock_level is None or stock_min is None or stock_max is None:
        return False
    return stock_level < stock_min and stock_level <= stock_max
