"""Browser capability, data models and error taxonomy shared by the scraper."""
