"""
Entry point for the thinkpath engine CLI.

Run with:
    python main.py --help
    python main.py path generate alice
"""
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from thinkpath.cli.main import main

if __name__ == "__main__":
    main()
