"""Project-wide views that belong to no bounded context."""
