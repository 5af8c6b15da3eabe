"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  BizFlow Pro - Models Package                                                ║
║                                                                              ║
║  Exports every request/response model for easy import                        ║
║  from models import OrderCreate, WebhookCreate, ContactStage, etc.           ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

# Tenant (multi-tenant)
from .tenant import (
    TenantUpdate,
    TenantResponse,
)

# Auth
from .auth import (
    VALID_ROLES,
    UserLogin,
    UserCreate,
    UserResponse,
)

# Inventory
from .product import (
    LOW_STOCK_THRESHOLD,
    ProductCreate,
    ProductUpdate,
    RestockRequest,
    ProductResponse,
)

# CRM
from .contact import (
    ContactStage,
    VALID_CONTACT_STAGES,
    ContactCreate,
    ContactUpdate,
    TagAdd,
    ContactResponse,
    normalize_email,
    is_valid_email_format,
)

# Orders
from .order import (
    OrderStatus,
    VALID_ORDER_STATUSES,
    CANCELLABLE_STATUSES,
    OrderItemInput,
    OrderCreate,
    OrderStatusUpdate,
    OrderItemResponse,
    OrderResponse,
)

# Webhooks
from .webhook import (
    WILDCARD_EVENT,
    KNOWN_EVENTS,
    WebhookCreate,
    WebhookActiveUpdate,
    WebhookTest,
)

# Pipelines
from .pipeline import (
    DEFAULT_STAGES,
    VALID_FIELD_TYPES,
    PipelineCreate,
    OpportunityCreate,
    OpportunityMove,
    StageFieldCreate,
    StageFieldUpdate,
    FieldValueSave,
    PublicFormToggle,
    PublicFormSubmit,
)

# Automation
from .workflow import (
    TriggerType,
    ActionType,
    WorkflowTrigger,
    WorkflowAction,
    WorkflowCreate,
    WorkflowActiveUpdate,
    TriggerEventIn,
)

# Tasks
from .task import (
    TASK_TODO,
    TASK_COMPLETED,
    TaskCreate,
)

# Purchasing
from .purchasing import (
    RECEIVING_MARKUP,
    PurchaseOrderStatus,
    ContainerStatus,
    CONTAINER_COST_FIELDS,
    SupplierCreate,
    PurchaseOrderItemInput,
    PurchaseOrderCreate,
    ContainerCreate,
    ContainerAddPO,
    ContainerCostsUpdate,
)

# Jobs
from .job import (
    DEFAULT_JOB_STAGES,
    JobStatus,
    VALID_JOB_STATUSES,
    JobCreate,
    JobStageUpdate,
)

# Conversations
from .conversation import (
    MessageChannel,
    MessageDirection,
    MessageStatus,
    MessageSend,
)

__all__ = [
    # Tenant
    "TenantUpdate",
    "TenantResponse",
    # Auth
    "VALID_ROLES",
    "UserLogin",
    "UserCreate",
    "UserResponse",
    # Inventory
    "LOW_STOCK_THRESHOLD",
    "ProductCreate",
    "ProductUpdate",
    "RestockRequest",
    "ProductResponse",
    # CRM
    "ContactStage",
    "VALID_CONTACT_STAGES",
    "ContactCreate",
    "ContactUpdate",
    "TagAdd",
    "ContactResponse",
    "normalize_email",
    "is_valid_email_format",
    # Orders
    "OrderStatus",
    "VALID_ORDER_STATUSES",
    "CANCELLABLE_STATUSES",
    "OrderItemInput",
    "OrderCreate",
    "OrderStatusUpdate",
    "OrderItemResponse",
    "OrderResponse",
    # Webhooks
    "WILDCARD_EVENT",
    "KNOWN_EVENTS",
    "WebhookCreate",
    "WebhookActiveUpdate",
    "WebhookTest",
    # Pipelines
    "DEFAULT_STAGES",
    "VALID_FIELD_TYPES",
    "PipelineCreate",
    "OpportunityCreate",
    "OpportunityMove",
    "StageFieldCreate",
    "StageFieldUpdate",
    "FieldValueSave",
    "PublicFormToggle",
    "PublicFormSubmit",
    # Automation
    "TriggerType",
    "ActionType",
    "WorkflowTrigger",
    "WorkflowAction",
    "WorkflowCreate",
    "WorkflowActiveUpdate",
    "TriggerEventIn",
    # Tasks
    "TASK_TODO",
    "TASK_COMPLETED",
    "TaskCreate",
    # Purchasing
    "RECEIVING_MARKUP",
    "PurchaseOrderStatus",
    "ContainerStatus",
    "CONTAINER_COST_FIELDS",
    "SupplierCreate",
    "PurchaseOrderItemInput",
    "PurchaseOrderCreate",
    "ContainerCreate",
    "ContainerAddPO",
    "ContainerCostsUpdate",
    # Jobs
    "DEFAULT_JOB_STAGES",
    "JobStatus",
    "VALID_JOB_STATUSES",
    "JobCreate",
    "JobStageUpdate",
    # Conversations
    "MessageChannel",
    "MessageDirection",
    "MessageStatus",
    "MessageSend",
]
