from __future__ import annotations

import sys
from pathlib import Path

PACKAGE_DIR = Path(__file__).resolve().parent
SRC_DIR = PACKAGE_DIR.parent
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from locus_inventory.config.settings import settings
from locus_inventory.utils.log import configure_logging


def main() -> None:
    configure_logging(settings.log_level, settings.log_dir)

    from locus_inventory.ui.app import InventoryApp

    app = InventoryApp()
    app.run()


if __name__ == "__main__":
    main()
