"""Dashboard scenarios, run against a live server, browser and fly.

Skipped unless a target is configured (ATC_URL, config file or --atc-url).
"""
