"""
Receipt Kernel

Shared foundation for the goods-receipt engine:
- Decimal-only numeric coercion and rounding
- Injectable clock
- Structured JSON logging
- Typed error hierarchy with machine-readable codes
"""

__version__ = "0.1.0"
