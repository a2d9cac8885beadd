# modhost/app/paths.py
from __future__ import annotations
import os
from pathlib import Path

__all__ = [
    "PACKAGE_DIR", "ROOT_DIR", "HOME_ENV_VAR", "DEFAULT_BASE_DIR",
    "BUCKETS_DIRNAME", "PKGS_DIRNAME", "SHARED_DEPS_DIRNAME", "DOWNLOAD_DIRNAME",
    "EXTENSIONS_DIRNAME", "LINK_TABLE_FILENAME", "STORAGE_FILENAME", "HIDDEN_PLUGINS_FILENAME",
    "getBaseDir",
]



PACKAGE_DIR = Path(__file__).resolve().parent.parent # modhost/
ROOT_DIR = PACKAGE_DIR.parent                        # repository root

HOME_ENV_VAR = "MODHOST_HOME"
DEFAULT_BASE_DIR = Path("~/.modhost")

# Well-known layout under the base directory
BUCKETS_DIRNAME = "buckets"
PKGS_DIRNAME = "pkgs"
SHARED_DEPS_DIRNAME = "site-packages"   # lives inside pkgs/, also a reserved package name
DOWNLOAD_DIRNAME = "download"
EXTENSIONS_DIRNAME = "extensions"
LINK_TABLE_FILENAME = "localLinks.json" # lives inside pkgs/
STORAGE_FILENAME = "storage.json"
HIDDEN_PLUGINS_FILENAME = "hiddenPlugins.json"



def getBaseDir() -> Path:
    """Base directory: $MODHOST_HOME, else ~/.modhost."""
    raw = os.environ.get(HOME_ENV_VAR)
    if raw:
        return Path(raw).expanduser()
    return DEFAULT_BASE_DIR.expanduser()
