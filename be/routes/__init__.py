"""HTTP routers, registered explicitly in ``be.api``."""
