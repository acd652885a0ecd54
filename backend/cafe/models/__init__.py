from .catalog import Ingredient, MenuItem, RecipeLine
from .inventory import StockLevel, StockLedgerEntry
from .orders import Order, OrderLine
from .payroll import Employee, WorkRecord

__all__ = [
    'Ingredient', 'MenuItem', 'RecipeLine',
    'StockLevel', 'StockLedgerEntry',
    'Order', 'OrderLine',
    'Employee', 'WorkRecord',
]
