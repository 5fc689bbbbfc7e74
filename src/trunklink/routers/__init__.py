"""HTTP routers for the TrunkLink alert service."""
