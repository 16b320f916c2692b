"""Domain layer: rich models with no infrastructure dependencies."""
