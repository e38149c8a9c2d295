"""Domain models, exceptions and text helpers shared by the services."""
