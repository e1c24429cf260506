"""HTTP clients and the exception taxonomy shared by all components."""
