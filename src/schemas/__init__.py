from .chain import BlockRef, ReceiptRef, TransactionRef
from .deployment import DeploymentEvent, DeploymentRecord, StoreResult
