import os
import re
from pathlib import Path
from dotenv import load_dotenv

CURRENT_DIR = Path(os.path.dirname(os.path.abspath(__file__))).parent
load_dotenv((CURRENT_DIR / '.env').as_posix())


def output_dir(directory=None) -> Path:
    """Directory to write exports into, created if missing."""
    target = Path(directory or os.getenv('EXPORT_DIR', CURRENT_DIR / 'reports'))
    target.mkdir(parents=True, exist_ok=True)
    return target


def safe_filename(name: str) -> str:
    """Whitespace to underscores, path separators and other unsafe characters dropped."""
    name = re.sub(r'\s+', '_', (name or '').strip())
    return re.sub(r'[^\w.\-]', '', name) or 'export'
