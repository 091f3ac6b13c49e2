"""Allow running as ``python -m schema_ledger``."""
import sys

from schema_ledger.cli import main

sys.exit(main())
