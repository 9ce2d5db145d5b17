"""Shared pytest configuration for the VaultGuard test suite.

Ensures the project root is on sys.path so test files can import
source modules (ltv, vaults, risk_monitor, etc.) directly.
"""

import sys
from pathlib import Path

# Add project root to sys.path so `import ltv`, `from risk_monitor import RiskMonitor`, etc. work
PROJECT_ROOT = str(Path(__file__).resolve().parent.parent)
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)
