"""Build dispatch module.

This module handles:
- Gradle command derivation
- The resolve -> package -> upload -> dispatch pipeline
"""

from build_service.builds.command import derive_command

__all__ = ["derive_command"]

# Access the pipeline via build_service.builds.pipeline to keep this import light
