"""HTTP routers: production lots, production entries, scrap."""
