"""Service layer: income engine, currency rates and statement storage."""
