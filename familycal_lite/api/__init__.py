"""aiohttp HTTP boundary for familycal_lite."""
