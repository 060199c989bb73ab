"""Build Service - remote build dispatch for Expo/React Native projects.

This package resolves EAS-style build profiles, packages a project tree into a
reproducible archive, uploads it to blob storage, and triggers a remote build
on GitHub Actions.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
