"""MarketGate marketplace: privileged business operations on top of the RBAC core."""
