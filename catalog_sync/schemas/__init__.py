from .catalog import (
    SourceProduct,
    SinkRecord,
    Channel,
    SyncSummary,
    SyncResult,
    CatalogSnapshot
)
