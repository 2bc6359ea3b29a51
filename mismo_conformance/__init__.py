"""
MISMO 3.4 conformance pipeline.

Bidirectional codec between the canonical loan-deal model and the MISMO 3.4
wire format, gated by preflight and schema-pack validation.
"""

__version__ = "0.1.0"
