"""HTML Scraper: safe static and headless-browser retrieval of public web pages."""

__version__ = "0.1.0"
