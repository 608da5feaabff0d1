"""Agent CRM API."""
