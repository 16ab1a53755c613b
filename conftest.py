"""Global pytest configuration."""

import os

# Point collaborators at fake hosts before any settings are read
os.environ.setdefault("BACKEND_BASE_URL", "http://catalog.test")
os.environ.setdefault("STORAGE_BASE_URL", "http://storage.test")
os.environ.setdefault("PLACES_API_KEY", "")
