"""Dashboard summary for event coordinators."""
