"""mtpcopy - Copy-once transfer of new files from an Android device over USB."""

__version__ = "0.1.0"
