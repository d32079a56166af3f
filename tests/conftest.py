"""
pytest configuration for fixture_assets tests.

Adds src directory to Python path for imports and enables the pytest plugin.
"""

import sys
from pathlib import Path

# Add src directory to Python path
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))

pytest_plugins = ["fixture_assets.pytest_plugin"]
