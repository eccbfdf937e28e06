"""Fixed-point complex arithmetic: bit-accurate models, Amaranth gateware."""
