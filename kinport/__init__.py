"""
kinport - Export app records from a paginated record API into a sheet.

Fetches every record (offset pagination up to the service's 10000 ceiling,
id-seek pagination beyond it), infers the column schema from the records,
flattens typed field values into cells and writes the sheet in one call.
"""

__version__ = "0.1.0"


__all__ = [
    "ExportConfig",
    "load_config",
    "get_kinport_home",
    "Exporter",
    "ExportResult",
]

from .config import ExportConfig, load_config, get_kinport_home
from .exporter import Exporter, ExportResult
