"""Release preparation for Flatpak manifests and prebuilt module overrides."""

__version__ = "0.1.0"
