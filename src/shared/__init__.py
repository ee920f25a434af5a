"""Building blocks shared by every bounded context: money, aggregates, errors, settings and logging."""
