LIBRARY_NAME = "unofficial-posthog-client"
__version__ = "1.0.0"
