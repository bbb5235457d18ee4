"""Domain services: invoicing, dashboard aggregation, GitHub sync, project events."""
