"""
Receipt Modules.

Thin orchestration layers over the Receipt Kernel and Engines.
Each module contains:
- Result models (the outcomes returned to controllers)
- Ports (collaborator protocols with in-memory implementations)
- A service facade (the entry points)

Modules:
- Goods receipt: GRN lines, purchase-order linkage, department issues
"""
