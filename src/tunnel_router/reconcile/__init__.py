from tunnel_router.reconcile.reconciler import InstalledResource, Reconciler, ResourceLedger

__all__ = ["InstalledResource", "Reconciler", "ResourceLedger"]
