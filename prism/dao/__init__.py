"""Data access classes for the prism database tables."""