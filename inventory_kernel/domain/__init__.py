"""Pure domain layer: values, DTOs, lifecycle rules.  No database access."""
