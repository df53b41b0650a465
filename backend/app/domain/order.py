"""
Order Domain Models

Represents Bling sales orders ("pedidos de venda") as stored in the
salesOrders collection. Documents keep Bling's field names (aliases below)
so a stored order is the API payload plus our sync metadata.

Author: TM3
Date: 2026-02-10
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict, Any, Union
from datetime import date, datetime


class OrderItem(BaseModel):
    """
    Order line item ("item")

    Fields:
        id: Bling item ID
        sku: Product code ("codigo")
        description: Product description at order time ("descricao")
        quantity: Units ordered ("quantidade")
        unit_price: Price per unit ("valor")
        discount: Line discount ("desconto")
    """

    id: Optional[int] = Field(None, description="Bling item ID")
    sku: Optional[str] = Field(None, alias="codigo", description="Product code")
    description: Optional[str] = Field(None, alias="descricao", description="Product description")
    unit: Optional[str] = Field(None, alias="unidade", description="Unit")
    quantity: float = Field(0, alias="quantidade", description="Quantity ordered")
    unit_price: float = Field(0, alias="valor", description="Price per unit")
    discount: float = Field(0, alias="desconto", description="Line discount")

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class Contact(BaseModel):
    """Customer ("contato") in order context"""

    id: Optional[int] = Field(None, description="Bling contact ID")
    name: Optional[str] = Field(None, alias="nome", description="Customer name")
    document: Optional[str] = Field(None, alias="numeroDocumento", description="CPF/CNPJ")

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class Store(BaseModel):
    """Marketplace/store the order came from ("loja")"""

    id: Optional[int] = Field(None, description="Bling store ID")
    name: Optional[str] = Field(None, alias="nome", description="Store label")

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class OrderStatus(BaseModel):
    """Status descriptor ("situacao")"""

    id: Optional[int] = Field(None, description="Status ID")
    value: Optional[int] = Field(None, alias="valor", description="Status value")
    name: Optional[str] = Field(None, alias="nome", description="Status name")

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class InvoiceRef(BaseModel):
    """Invoice reference ("notaFiscal"); id 0 means no invoice issued"""

    id: Optional[int] = Field(None, description="Invoice ID")

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class SaleOrder(BaseModel):
    """
    Sales order domain model

    Primary key is the Bling numeric order id; every write is an upsert keyed
    by str(id). Orders listed but not yet enriched have no items.

    Fields:
        id: Bling order ID (primary key)
        number: Order number ("numero")
        store_order_number: Marketplace order number ("numeroLoja")
        issue_date: Issue date, YYYY-MM-DD ("data")
        store: Store/marketplace ("loja")
        customer: Customer ("contato")
        items: Line items ("itens")
        products_total / total: Totals ("totalProdutos", "total")
        discount: Order discount ("desconto")
        shipment: Shipping info ("transporte")
        invoice: Invoice reference ("notaFiscal")
        status: Status descriptor ("situacao")

        # Sync metadata
        deleted / deleted_at: Soft-delete flag and timestamp
        webhook_source: True when written by the webhook receiver
    """

    id: int = Field(..., description="Bling order ID")
    number: Optional[Union[int, str]] = Field(None, alias="numero", description="Order number")
    store_order_number: Optional[Union[str, int]] = Field(None, alias="numeroLoja", description="Marketplace order number")
    issue_date: Optional[str] = Field(None, alias="data", description="Issue date (YYYY-MM-DD)")
    store: Optional[Store] = Field(None, alias="loja")
    customer: Optional[Contact] = Field(None, alias="contato")
    items: List[OrderItem] = Field(default_factory=list, alias="itens")
    products_total: Optional[float] = Field(None, alias="totalProdutos")
    total: Optional[float] = Field(None, description="Order total")
    discount: Optional[Dict[str, Any]] = Field(None, alias="desconto")
    shipment: Optional[Dict[str, Any]] = Field(None, alias="transporte")
    invoice: Optional[InvoiceRef] = Field(None, alias="notaFiscal")
    status: Optional[OrderStatus] = Field(None, alias="situacao")

    # Sync metadata
    deleted: bool = Field(False, description="Soft-delete flag")
    deleted_at: Optional[str] = Field(None, alias="deletedAt")
    webhook_source: bool = Field(False, alias="webhookSource")
    webhook_received_at: Optional[str] = Field(None, alias="webhookReceivedAt")
    imported_at: Optional[str] = Field(None, alias="importedAt")
    last_updated: Optional[str] = Field(None, alias="lastUpdated")

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    @property
    def doc_id(self) -> str:
        return str(self.id)

    @property
    def has_details(self) -> bool:
        """Enriched by a detail fetch (listing summaries carry no items)"""
        return len(self.items) > 0

    @property
    def has_invoice(self) -> bool:
        return bool(self.invoice and self.invoice.id)

    @property
    def order_date(self) -> Optional[date]:
        return parse_order_date(self.issue_date)

    def to_document(self) -> Dict[str, Any]:
        """Serialize with Bling field names for the document store"""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


def parse_order_date(value: Optional[str]) -> Optional[date]:
    """Parse Bling's YYYY-MM-DD (or ISO datetime); '0000-00-00' and junk give None"""
    if not value:
        return None
    try:
        return datetime.strptime(value[:10], "%Y-%m-%d").date()
    except ValueError:
        return None


def is_active(order: Union[SaleOrder, Dict[str, Any]]) -> bool:
    """
    Single definition of an "active" order: not soft-deleted.

    Every read path (listing, counting, smart-sync baseline, demand
    aggregation) filters through this predicate.
    """
    if isinstance(order, SaleOrder):
        return not order.deleted
    return not order.get("deleted", False)


class TopProduct(BaseModel):
    """Product ranked by revenue on the sales dashboard"""

    name: str
    total: float = Field(0, description="Units sold")
    revenue: float = Field(0, description="Sum of quantity * unit price")


class SalesDashboard(BaseModel):
    """
    Sales aggregate over enriched, active orders in a date range

    Fields:
        total_revenue: Sum of order totals
        total_sales: Number of orders
        average_ticket: total_revenue / total_sales (0 with no sales)
        unique_customers: Distinct contact ids
        top_products: Ten best products by revenue
    """

    date_from: date
    date_to: date
    total_revenue: float = 0
    total_sales: int = 0
    average_ticket: float = 0
    unique_customers: int = 0
    top_products: List[TopProduct] = Field(default_factory=list)
