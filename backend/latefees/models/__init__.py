# Models package - API wire records and charge/pipeline models
from .wire import (
    DelinquencyRow,
    TenantDirectoryEntry,
    TransactionalTenant,
)
from .charges import (
    ChargeRow,
    BulkChargeItem,
    PipelineStatus,
    PipelineResult,
    SchedulerRun,
)
