import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

from dotenv import load_dotenv

# Load environment from .env if present
load_dotenv()

# --- CONFIGURATION ---
CONNPASS_BASE_URL = os.getenv('CONNPASS_BASE_URL', 'https://iotlt.connpass.com').rstrip('/')
LIST_URL_TEMPLATE = CONNPASS_BASE_URL + '/event/?page={page}'
USER_AGENT = os.getenv('USER_AGENT', 'iotlt-connpass-scraper/1.0 (+https://github.com/)')

OUTPUT_PATH = Path(os.getenv('OUTPUT_PATH', 'data/iotlt_events.md'))
SLIDE_CACHE_PATH = Path(os.getenv('SLIDE_CACHE_PATH', 'data/slide_url_cache.json'))
# Data directory for the rotating log file
DATA_DIR = Path(os.getenv('DATA_DIR', 'data'))

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
REQUEST_DELAY = float(os.getenv('REQUEST_DELAY', '0'))  # seconds between requests
MAX_RETRIES = int(os.getenv('MAX_RETRIES', '3'))
RETRY_DELAY = float(os.getenv('RETRY_DELAY', '1'))  # seconds

# Per-call timeouts (seconds)
PAGE_TIMEOUT = 30
SLIDE_TIMEOUT = 18
SHORTENER_TIMEOUT = 12

# Slide validation reads only the head of the document
SLIDE_RANGE_BYTES = 50000

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: str = LOG_LEVEL, log_dir: Path = DATA_DIR) -> None:
    """Send logs to stderr and to a size-capped file under ``log_dir``."""
    log_dir.mkdir(parents=True, exist_ok=True)
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    stream = logging.StreamHandler()
    rotating = RotatingFileHandler(log_dir / 'iotlt_scraper.log', maxBytes=2 * 1024 * 1024,
                                   backupCount=3, encoding='utf-8')
    for handler in (stream, rotating):
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel(getattr(logging, level, logging.INFO))
