"""
Inventory Kernel

Stock consistency and BOM release engine with:
- A single stock ledger as the only writer of material quantities
- Compare-and-swap stock adjustments that never drive stock negative
- All-or-nothing BOM release and material allocation
- BOM approval/release lifecycle with revision history
- Derived low-stock alerts
"""

__version__ = "0.1.0"
