"""Services module for image-for-me."""
