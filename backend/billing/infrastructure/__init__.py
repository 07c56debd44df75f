"""Infrastructure: persistence providers, preload and logging setup."""
