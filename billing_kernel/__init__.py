"""
Billing Kernel

Pure core of the invoice lifecycle engine:
- Integer minor-unit money arithmetic
- Typed, coded exceptions
- Explicit Outcome results at component boundaries
- Structured JSON logging
- Injectable clocks
"""

__version__ = "0.1.0"
