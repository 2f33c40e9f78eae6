"""
Conclave SDK: Python
Convenience exports for submitting confidential tasks and reading results.
"""

from .version import __version__  # noqa: F401

# Core config & errors
from .config import ClientConfig  # noqa: F401
from .errors import (  # noqa: F401
    ConclaveSdkError,
    DecryptionError,
    EncodingError,
    InconsistentStateError,
    NotFoundError,
    NotReadyError,
    RpcError,
    SubmissionError,
    TaskTimeoutError,
    TransportError,
    VerificationError,
)

# Types
from .types import (  # noqa: F401
    EngStatus,
    EthStatus,
    StatusCodes,
    TaskDescriptor,
    TaskRecord,
    TaskResult,
)

# Lifecycle components
from .crypto.session import CryptoSession, EphemeralKeyPair  # noqa: F401
from .task.builder import TaskBuilder  # noqa: F401
from .ledger import Ledger, RpcLedger  # noqa: F401
from .poller import PollPolicy, StatusPoller  # noqa: F401
from .worker import WorkerClient  # noqa: F401
from .fetcher import ResultFetcher  # noqa: F401
from .decryptor import ResultDecryptor  # noqa: F401
from .events import TaskEvent  # noqa: F401
from .client import ConclaveClient  # noqa: F401

# Utilities
from .utils.units import from_grains, to_grains  # noqa: F401

__all__ = [
    "__version__",
    # Core
    "ClientConfig",
    "ConclaveSdkError", "EncodingError", "SubmissionError", "NotFoundError",
    "TaskTimeoutError", "InconsistentStateError", "TransportError",
    "VerificationError", "DecryptionError", "NotReadyError", "RpcError",
    # Types
    "EthStatus", "EngStatus", "StatusCodes",
    "TaskDescriptor", "TaskRecord", "TaskResult",
    # Components
    "CryptoSession", "EphemeralKeyPair", "TaskBuilder",
    "Ledger", "RpcLedger", "PollPolicy", "StatusPoller",
    "WorkerClient", "ResultFetcher", "ResultDecryptor",
    "TaskEvent", "ConclaveClient",
    # Utils
    "to_grains", "from_grains",
]
