from pathlib import Path

# Define the root directory of the project
ROOT_DIR = Path(__file__).resolve().parent

# Define specific directories
LOGS_DIR = ROOT_DIR / "logs"
CONFIG_DIR = ROOT_DIR / "config"
DATA_DIR = ROOT_DIR / "data"
TOKENS_DIR = DATA_DIR / "tokens"
UPLOADS_DIR = ROOT_DIR / "uploads"

# Ensure necessary directories exist
LOGS_DIR.mkdir(parents=True, exist_ok=True)
