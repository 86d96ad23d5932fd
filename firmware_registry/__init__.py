"""Single-image firmware registry for OTA device updates."""
