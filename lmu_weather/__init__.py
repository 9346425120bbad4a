"""Le Mans Ultimate weather adapter for dashboard hosts."""
