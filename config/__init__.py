"""Runtime configuration for whoosh2garmin."""
