from .object_transport import ObjectTransport, ProbeResult, ProbeStatus
from .session import Credentials, Session, SessionState
from .strategy import (
    ChunkedStrategy,
    SingleShotStrategy,
    StreamingStrategy,
    TransferDescriptor,
    TransferStrategy,
    select_strategy,
)
from .streams import open_download, open_upload

__all__ = [
    "ObjectTransport",
    "ProbeResult",
    "ProbeStatus",
    "Credentials",
    "Session",
    "SessionState",
    "ChunkedStrategy",
    "SingleShotStrategy",
    "StreamingStrategy",
    "TransferDescriptor",
    "TransferStrategy",
    "select_strategy",
    "open_download",
    "open_upload",
]
