"""Per-source pipeline and multi-calendar aggregation for familycal_lite."""
