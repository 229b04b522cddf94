"""HTTP blueprints for the analytics API."""
