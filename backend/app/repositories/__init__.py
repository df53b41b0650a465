"""
Repository Layer - Data Access

This layer handles all document store access and returns domain models.
Repositories abstract away storage details from business logic.

Author: TM3
Date: 2026-02-10
"""
from app.repositories.order_repository import OrderRepository
from app.repositories.stock_repository import StockRepository
from app.repositories.app_config_repository import AppConfigRepository

__all__ = [
    'OrderRepository',
    'StockRepository',
    'AppConfigRepository'
]
