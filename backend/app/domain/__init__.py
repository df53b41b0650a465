"""
Domain Layer - Business Entities

This layer contains Pydantic models representing business entities.
These models enforce type safety and validation across the application.

Author: TM3
Date: 2026-02-10
"""
from app.domain.credentials import Credentials, Integration
from app.domain.order import SaleOrder, OrderItem, is_active
from app.domain.stock import StockRecord, StockSnapshot, StockThreshold, DemandRow, needs_production
from app.domain.sync import SyncMode, SyncPhase, SyncProgress, SyncSummary
from app.domain.webhook import WebhookEnvelope, parse_stock_payload

__all__ = [
    'Credentials', 'Integration',
    'SaleOrder', 'OrderItem', 'is_active',
    'StockRecord', 'StockSnapshot', 'StockThreshold', 'DemandRow', 'needs_production',
    'SyncMode', 'SyncPhase', 'SyncProgress', 'SyncSummary',
    'WebhookEnvelope', 'parse_stock_payload',
]
