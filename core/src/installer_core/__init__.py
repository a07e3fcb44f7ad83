from installer_core.config import InstallerConfig, load_installer_config
from installer_core.fields import FieldDeriver, MalformedEndpointURL
from installer_core.migrations import MigrationOutcome, MigrationRunner

__version__ = "0.1.0"

__all__ = [
    "FieldDeriver",
    "InstallerConfig",
    "MalformedEndpointURL",
    "MigrationOutcome",
    "MigrationRunner",
    "__version__",
    "load_installer_config",
]
