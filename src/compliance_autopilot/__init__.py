"""
Compliance Autopilot - resilience layer for outbound platform and LLM calls.

Subpackages:
- compliance_autopilot.core: errors, cache, hashing, logging, settings
- compliance_autopilot.execution: rate limiting, retries, the ResilientClient facade
"""

__version__ = "0.1.0"

from compliance_autopilot.core import *  # noqa
from compliance_autopilot.execution import *  # noqa
