"""Resolve the machine images a cluster's server groups are running."""
