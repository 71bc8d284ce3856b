from erp_api.blueprints import inventory, payables, procurement

BLUEPRINTS = (inventory.bp, procurement.bp, procurement.orders_bp, payables.bp)

__all__ = ["BLUEPRINTS"]
