"""initial workshop schema

Revision ID: 5c1e7a9d2b40
Revises:
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '5c1e7a9d2b40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'Technician',
        sa.Column('TechnicianID', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('FullName', sa.String(200), nullable=False),
        sa.Column('Role', sa.String(20), nullable=False, server_default=sa.text("'Technician'")),
        sa.Column('Phone', sa.String(50)),
        sa.Column('IsActive', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.CheckConstraint("Role in ('Technician','Assistant')", name='CK_Technician_Role'),
    )
    op.create_table(
        'Holiday',
        sa.Column('HolidayID', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('HolidayDate', sa.Date(), nullable=False, unique=True),
        sa.Column('Name', sa.String(200), nullable=False),
    )
    op.create_table(
        'RepairCategory',
        sa.Column('CategoryID', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('Code', sa.String(20), nullable=False, unique=True),
        sa.Column('Name', sa.String(200), nullable=False),
        sa.Column('ParentCode', sa.String(20)),
        sa.Column('IsActive', sa.Boolean(), nullable=False, server_default=sa.text('1')),
    )
    op.create_table(
        'StandardTask',
        sa.Column('TaskID', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('CategoryCode', sa.String(20), nullable=False),
        sa.Column('Item', sa.String(200), nullable=False),
        sa.Column('StandardHours', sa.Numeric(6, 2), nullable=False),
        sa.CheckConstraint('StandardHours >= 0', name='CK_StandardTask_Hours_NonNegative'),
    )
    op.create_table(
        'DocumentCounter',
        sa.Column('Prefix', sa.String(10), primary_key=True),
        sa.Column('Year', sa.SmallInteger(), primary_key=True),
        sa.Column('LastSeq', sa.Integer(), nullable=False),
    )
    op.create_table(
        'StockItem',
        sa.Column('StockItemID', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('Code', sa.String(50), nullable=False, unique=True),
        sa.Column('Name', sa.String(200), nullable=False),
        sa.Column('Unit', sa.String(20), nullable=False),
        sa.Column('Category', sa.String(100)),
        sa.Column('UnitPrice', sa.Numeric(12, 2), nullable=False),
        sa.Column('Quantity', sa.Numeric(12, 3), nullable=False, server_default=sa.text('0')),
        sa.Column('MinStock', sa.Numeric(12, 3), nullable=False, server_default=sa.text('0')),
        sa.Column('MaxStock', sa.Numeric(12, 3)),
        sa.Column('Status_s', sa.String(20), nullable=False),
        sa.Column('IsFungibleUsedItem', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('IsRevolvingPart', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('IsActive', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.CheckConstraint('MinStock >= 0', name='CK_Stock_MinStock_NonNegative'),
        sa.CheckConstraint('MaxStock IS NULL OR MaxStock >= MinStock', name='CK_Stock_Max_GE_Min'),
        sa.CheckConstraint("Status_s in ('OutOfStock','Low','Normal','Overstock')", name='CK_Stock_Status'),
    )
    op.create_table(
        'WorkOrder',
        sa.Column('WorkOrderID', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('OrderNo', sa.String(20), nullable=False, unique=True),
        sa.Column('OrderYear', sa.SmallInteger(), nullable=False),
        sa.Column('OrderSeq', sa.Integer(), nullable=False),
        sa.Column('LicensePlate', sa.String(30), nullable=False),
        sa.Column('VehicleType', sa.String(50)),
        sa.Column('ReportedBy', sa.String(100)),
        sa.Column('Category', sa.String(20)),
        sa.Column('Priority_s', sa.String(20), nullable=False),
        sa.Column('Status_s', sa.String(20), nullable=False),
        sa.Column('ProblemDescription', sa.String(2000), nullable=False),
        sa.Column('TechnicianID', sa.Integer(), sa.ForeignKey('Technician.TechnicianID')),
        sa.Column('ExternalContractor', sa.String(200)),
        sa.Column('CreatedAt', sa.DateTime(), nullable=False),
        sa.Column('UpdatedAt', sa.DateTime(), nullable=False),
        sa.Column('ApprovedAt', sa.DateTime()),
        sa.Column('RepairStartedAt', sa.DateTime()),
        sa.Column('RepairEndedAt', sa.DateTime()),
        sa.Column('DispositionsResolvedAt', sa.DateTime()),
        sa.Column('LaborCost', sa.Numeric(12, 2), nullable=False),
        sa.Column('LaborVatEnabled', sa.Boolean(), nullable=False),
        sa.Column('LaborVatRate', sa.Numeric(5, 2), nullable=False),
        sa.Column('PartsVat', sa.Numeric(12, 2), nullable=False),
        sa.Column('RepairResult', sa.String(2000)),
        sa.Column('Notes', sa.String(1000)),
        sa.CheckConstraint(
            "Status_s in ('Pending','InProgress','AwaitingParts','Completed','Cancelled')",
            name='CK_WO_Status',
        ),
        sa.CheckConstraint("Priority_s in ('Normal','Urgent','Emergency')", name='CK_WO_Priority'),
        sa.CheckConstraint('LaborCost >= 0', name='CK_WO_LaborCost_NonNegative'),
        sa.UniqueConstraint('OrderYear', 'OrderSeq', name='UQ_WorkOrder_Year_Seq'),
    )
    op.create_index('IX_WorkOrder_Status', 'WorkOrder', ['Status_s'])
    op.create_table(
        'WorkOrderAssistant',
        sa.Column('WorkOrderID', sa.Integer(), sa.ForeignKey('WorkOrder.WorkOrderID', ondelete='CASCADE'), primary_key=True),
        sa.Column('TechnicianID', sa.Integer(), sa.ForeignKey('Technician.TechnicianID'), primary_key=True),
    )
    op.create_table(
        'PartRequisitionItem',
        sa.Column('ItemID', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('WorkOrderID', sa.Integer(), sa.ForeignKey('WorkOrder.WorkOrderID', ondelete='CASCADE'), nullable=False),
        sa.Column('LineNo', sa.Integer(), nullable=False),
        sa.Column('StockItemID', sa.Integer(), sa.ForeignKey('StockItem.StockItemID')),
        sa.Column('Name', sa.String(200), nullable=False),
        sa.Column('Code', sa.String(50)),
        sa.Column('Quantity', sa.Numeric(12, 3), nullable=False),
        sa.Column('Unit', sa.String(20), nullable=False),
        sa.Column('UnitPrice', sa.Numeric(12, 2), nullable=False),
        sa.Column('Source_s', sa.String(20), nullable=False),
        sa.Column('SupplierName', sa.String(200)),
        sa.Column('PurchaseDate', sa.Date()),
        sa.CheckConstraint('Quantity > 0', name='CK_PRItem_Quantity_Positive'),
        sa.CheckConstraint('UnitPrice >= 0', name='CK_PRItem_UnitPrice_NonNegative'),
        sa.CheckConstraint("Source_s in ('InternalStock','ExternalSupplier')", name='CK_PRItem_Source'),
        sa.UniqueConstraint('WorkOrderID', 'LineNo', name='UQ_PRItem_WorkOrder_Line'),
    )
    op.create_table(
        'EstimationAttempt',
        sa.Column('AttemptID', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('WorkOrderID', sa.Integer(), sa.ForeignKey('WorkOrder.WorkOrderID', ondelete='CASCADE'), nullable=False),
        sa.Column('Sequence', sa.Integer(), nullable=False),
        sa.Column('CreatedAt', sa.DateTime(), nullable=False),
        sa.Column('EstimatedStart', sa.DateTime(), nullable=False),
        sa.Column('EstimatedEnd', sa.DateTime(), nullable=False),
        sa.Column('EstimatedHours', sa.Numeric(8, 2), nullable=False),
        sa.Column('Status_s', sa.String(20), nullable=False),
        sa.Column('FailureReason', sa.String(500)),
        sa.Column('Reasoning', sa.String(1000)),
        sa.CheckConstraint("Status_s in ('Active','Completed','Failed')", name='CK_Est_Status'),
        sa.CheckConstraint('Sequence >= 1', name='CK_Est_Sequence_Positive'),
        sa.CheckConstraint('EstimatedHours >= 0', name='CK_Est_Hours_NonNegative'),
        sa.UniqueConstraint('WorkOrderID', 'Sequence', name='UQ_Est_WorkOrder_Sequence'),
    )
    op.create_table(
        'PurchaseRequisition',
        sa.Column('RequisitionID', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('RequisitionNo', sa.String(20), nullable=False, unique=True),
        sa.Column('ReqYear', sa.SmallInteger(), nullable=False),
        sa.Column('ReqSeq', sa.Integer(), nullable=False),
        sa.Column('Status_s', sa.String(20), nullable=False),
        sa.Column('RequestType', sa.String(20), nullable=False),
        sa.Column('RequesterName', sa.String(200)),
        sa.Column('Department', sa.String(100)),
        sa.Column('SupplierName', sa.String(200)),
        sa.Column('InBudget', sa.Boolean(), nullable=False),
        sa.Column('Vat', sa.Numeric(12, 2), nullable=False),
        sa.Column('Notes', sa.String(1000)),
        sa.Column('ApprovedBy', sa.String(200)),
        sa.Column('ApprovedAt', sa.DateTime()),
        sa.Column('ReceivedAt', sa.DateTime()),
        sa.Column('CreatedAt', sa.DateTime(), nullable=False),
        sa.Column('UpdatedAt', sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "Status_s in ('Draft','PendingApproval','Approved','AwaitingGoods','Received','Cancelled')",
            name='CK_PR_Status',
        ),
        sa.CheckConstraint(
            "RequestType in ('Product','Service','Equipment','Asset','Other')",
            name='CK_PR_RequestType',
        ),
        sa.CheckConstraint('Vat >= 0', name='CK_PR_Vat_NonNegative'),
        sa.UniqueConstraint('ReqYear', 'ReqSeq', name='UQ_PR_Year_Seq'),
    )
    op.create_table(
        'PurchaseRequisitionLine',
        sa.Column('LineID', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('RequisitionID', sa.Integer(), sa.ForeignKey('PurchaseRequisition.RequisitionID', ondelete='CASCADE'), nullable=False),
        sa.Column('LineNo', sa.Integer(), nullable=False),
        sa.Column('StockItemID', sa.Integer(), sa.ForeignKey('StockItem.StockItemID')),
        sa.Column('Description', sa.String(300), nullable=False),
        sa.Column('Quantity', sa.Numeric(12, 3), nullable=False),
        sa.Column('Unit', sa.String(20)),
        sa.Column('UnitPrice', sa.Numeric(12, 2), nullable=False),
        sa.Column('ExpectedDate', sa.Date()),
        sa.CheckConstraint('Quantity > 0', name='CK_PRLine_Quantity_Positive'),
        sa.CheckConstraint('UnitPrice >= 0', name='CK_PRLine_UnitPrice_NonNegative'),
        sa.UniqueConstraint('RequisitionID', 'LineNo', name='UQ_PRLine_Req_Line'),
    )
    op.create_table(
        'UsedPart',
        sa.Column('UsedPartID', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('WorkOrderID', sa.Integer(), sa.ForeignKey('WorkOrder.WorkOrderID'), nullable=False),
        sa.Column('StockItemID', sa.Integer(), sa.ForeignKey('StockItem.StockItemID')),
        sa.Column('PartName', sa.String(200), nullable=False),
        sa.Column('PartCode', sa.String(50)),
        sa.Column('RemovedAt', sa.DateTime(), nullable=False),
        sa.Column('InitialQuantity', sa.Numeric(12, 3), nullable=False),
        sa.Column('Unit', sa.String(20), nullable=False),
        sa.Column('Status_s', sa.String(20), nullable=False),
        sa.Column('Notes', sa.String(1000)),
        sa.CheckConstraint('InitialQuantity > 0', name='CK_UsedPart_Quantity_Positive'),
        sa.CheckConstraint("Status_s in ('Pending','PartiallyHandled','FullyHandled')", name='CK_UsedPart_Status'),
    )
    op.create_table(
        'UsedPartDisposition',
        sa.Column('DispositionID', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('UsedPartID', sa.Integer(), sa.ForeignKey('UsedPart.UsedPartID', ondelete='CASCADE'), nullable=False),
        sa.Column('Sequence', sa.Integer(), nullable=False),
        sa.Column('Kind', sa.String(30), nullable=False),
        sa.Column('Quantity', sa.Numeric(12, 3), nullable=False),
        sa.Column('Condition', sa.String(100)),
        sa.Column('BuyerName', sa.String(200)),
        sa.Column('SalePrice', sa.Numeric(12, 2)),
        sa.Column('TargetStockItemID', sa.Integer(), sa.ForeignKey('StockItem.StockItemID')),
        sa.Column('CreatedAt', sa.DateTime(), nullable=False),
        sa.Column('Actor', sa.String(100)),
        sa.Column('Notes', sa.String(500)),
        sa.CheckConstraint(
            "Kind in ('Sell','Dispose','KeepForReuse','MoveToRevolving','MoveToFungible')",
            name='CK_UPD_Kind',
        ),
        sa.CheckConstraint('Quantity > 0', name='CK_UPD_Quantity_Positive'),
    )
    op.create_table(
        'StockTransaction',
        sa.Column('TxnID', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('StockItemID', sa.Integer(), sa.ForeignKey('StockItem.StockItemID'), nullable=False),
        sa.Column('TxnType', sa.String(20), nullable=False),
        sa.Column('Quantity', sa.Numeric(12, 3), nullable=False),
        sa.Column('UnitPrice', sa.Numeric(12, 2), nullable=False),
        sa.Column('TxnDate', sa.DateTime(), nullable=False),
        sa.Column('Actor', sa.String(100), nullable=False),
        sa.Column('Notes', sa.String(500)),
        sa.Column('PostingKey', sa.String(200), nullable=False, unique=True),
        sa.Column('WorkOrderID', sa.Integer(), sa.ForeignKey('WorkOrder.WorkOrderID')),
        sa.Column('RequisitionID', sa.Integer(), sa.ForeignKey('PurchaseRequisition.RequisitionID')),
        sa.Column('UsedPartID', sa.Integer(), sa.ForeignKey('UsedPart.UsedPartID')),
        sa.CheckConstraint("TxnType IN ('Receipt','Withdrawal')", name='CK_STxn_TxnType'),
        sa.CheckConstraint(
            "(TxnType = 'Receipt' AND Quantity > 0) OR (TxnType = 'Withdrawal' AND Quantity < 0)",
            name='CK_STxn_Quantity_Sign',
        ),
    )
    # Ledger lookups by item and by owning document
    op.create_index('IX_STxn_StockItem', 'StockTransaction', ['StockItemID', 'TxnID'])
    op.create_index('IX_STxn_WorkOrder', 'StockTransaction', ['WorkOrderID'])
    op.create_index('IX_STxn_Requisition', 'StockTransaction', ['RequisitionID'])


def downgrade():
    op.drop_index('IX_STxn_Requisition', table_name='StockTransaction')
    op.drop_index('IX_STxn_WorkOrder', table_name='StockTransaction')
    op.drop_index('IX_STxn_StockItem', table_name='StockTransaction')
    op.drop_table('StockTransaction')
    op.drop_table('UsedPartDisposition')
    op.drop_table('UsedPart')
    op.drop_table('PurchaseRequisitionLine')
    op.drop_table('PurchaseRequisition')
    op.drop_table('EstimationAttempt')
    op.drop_table('PartRequisitionItem')
    op.drop_table('WorkOrderAssistant')
    op.drop_index('IX_WorkOrder_Status', table_name='WorkOrder')
    op.drop_table('WorkOrder')
    op.drop_table('StockItem')
    op.drop_table('DocumentCounter')
    op.drop_table('StandardTask')
    op.drop_table('RepairCategory')
    op.drop_table('Holiday')
    op.drop_table('Technician')
