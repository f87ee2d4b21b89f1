"""HTTP routers and API plumbing."""
