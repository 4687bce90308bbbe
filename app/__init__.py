"""TubeFeed application package: settings, storage and the HTTP API."""
