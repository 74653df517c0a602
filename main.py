"""parley dev launcher. Runs a demo conversation from the checkout."""

import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

from parley.cli import main  # noqa: E402


if __name__ == "__main__":
    sys.exit(main())
