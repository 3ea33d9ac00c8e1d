"""Configuration, clock, logging and HTTP fetching for familycal_lite."""
