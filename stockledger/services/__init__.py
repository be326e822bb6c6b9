"""Inventory ledger core: catalog, recipes, ledger store, reconciler, shifts."""
