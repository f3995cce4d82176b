"""Background runtime: sampler and component wiring."""
