from .api_client import ApiClient
from .session_service import SessionService
from .device_identity import DeviceIdentityService
from .layout_persistence import LocalLayoutPersistence, ServerLayoutPersistence, build_layout_persistence
from .print_layout_service import PrintLayoutStore
from .income_service import IncomeService
from .printer_service import AgentPrinter, BrowserPrinter, EscPosPrinter, FallbackPrinter, select_printer

__all__ = [
    "ApiClient",
    "SessionService",
    "DeviceIdentityService",
    "LocalLayoutPersistence",
    "ServerLayoutPersistence",
    "build_layout_persistence",
    "PrintLayoutStore",
    "IncomeService",
    "AgentPrinter",
    "BrowserPrinter",
    "EscPosPrinter",
    "FallbackPrinter",
    "select_printer",
]
