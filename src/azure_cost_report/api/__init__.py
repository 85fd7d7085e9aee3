"""HTTP transports for the cost report function."""
