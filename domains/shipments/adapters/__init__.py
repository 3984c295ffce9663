# domains/shipments/adapters/__init__.py
from .base import AdapterResult, CarrierAdapter
from .dhl import DHLAdapter
from .fedex import FedExAdapter
from .local import LocalCourierAdapter
from .provider import get_adapter, register_adapter, resolve_code
from .ups import UPSAdapter

register_adapter("dhl", DHLAdapter)
register_adapter("fedex", FedExAdapter)
register_adapter("ups", UPSAdapter)
register_adapter("local", LocalCourierAdapter)


__all__ = [
    "AdapterResult",
    "CarrierAdapter",
    "DHLAdapter",
    "FedExAdapter",
    "UPSAdapter",
    "LocalCourierAdapter",
    "get_adapter",
    "register_adapter",
    "resolve_code",
]
