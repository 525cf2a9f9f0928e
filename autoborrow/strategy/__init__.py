"""Strategy modules"""
from .autoborrow import AutoBorrowStrategy
from .registry import StrategyRegistry, build_registry
from .sizer import compute_borrow_amount

__all__ = ["AutoBorrowStrategy", "StrategyRegistry", "build_registry", "compute_borrow_amount"]
