"""Infrastructure layer: broker adapters, local stores and the external sync target."""
