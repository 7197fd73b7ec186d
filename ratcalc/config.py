"""Configuration defaults, read from the environment (and a .env file)."""
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

PRECISION = int(os.getenv("RATCALC_PRECISION", "5"))
MAX_CHAIN_LENGTH = int(os.getenv("RATCALC_MAX_CHAIN_LENGTH", "10000"))
MAX_EXPONENT = int(os.getenv("RATCALC_MAX_EXPONENT", "100000"))
MAX_RESULT_BITS = int(os.getenv("RATCALC_MAX_RESULT_BITS", "10000"))

LOG_LEVEL = os.getenv("RATCALC_LOG_LEVEL", "WARNING")

HISTORY_FILE = Path(os.getenv("RATCALC_HISTORY_FILE", str(Path.home() / ".ratcalc_history")))
HISTORY_LENGTH = int(os.getenv("RATCALC_HISTORY_LENGTH", "1000"))
