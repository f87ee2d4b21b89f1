"""Domain packages for the studio backend."""
