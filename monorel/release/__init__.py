"""Version bumps, release requests and merge dispatch."""
