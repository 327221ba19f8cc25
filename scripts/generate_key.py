from __future__ import annotations

"""generate_key.py — Print a new Fernet key for FERNET_KEYS.

    python scripts/generate_key.py

To rotate: prepend the new key (FERNET_KEYS=new,old), deploy, run
rotate_keys.py, then drop the old key.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from byobucket.core.crypto import generate_key

if __name__ == "__main__":
    print(generate_key())
