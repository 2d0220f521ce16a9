"""Route modules mounted by ``html_scraper.api.main.create_app``."""
