"""Insurance Verification & Authentication System (IVAS) backend."""

__version__ = "1.0.0"
