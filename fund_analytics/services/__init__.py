"""Service layer coordinating the analytics engines."""
