from .technician import Technician
from .master_data import Holiday, RepairCategory, StandardTask
from .workorder import WorkOrder, PartRequisitionItem, work_order_assistant
from .estimation import EstimationAttempt
from .stock import StockItem, StockTransaction
from .used_part import UsedPart, UsedPartDisposition
from .requisition import PurchaseRequisition, PurchaseRequisitionLine
from .counter import DocumentCounter
__all__ = [
    "Technician", "Holiday", "RepairCategory", "StandardTask",
    "WorkOrder", "PartRequisitionItem", "work_order_assistant", "EstimationAttempt",
    "StockItem", "StockTransaction", "UsedPart", "UsedPartDisposition",
    "PurchaseRequisition", "PurchaseRequisitionLine", "DocumentCounter",
]
