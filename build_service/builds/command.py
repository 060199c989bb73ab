"""Gradle command derivation.

Pure mapping from a BuildSpec to the Gradle task run by the remote build.
"""

from build_service.types import BuildSpec, OutputKind

# Gradle task verb per output kind
COMMAND_VERBS: dict[OutputKind, str] = {
    OutputKind.PACKAGE: "assemble",
    OutputKind.BUNDLE: "bundle",
}


def derive_command(spec: BuildSpec) -> str:
    """Return the Gradle command for a build spec.

    An explicit command is returned unchanged. Otherwise the verb for the
    output kind is joined with the capitalized variant, giving one of
    assembleRelease, assembleDebug, bundleRelease or bundleDebug.

    Args:
        spec: Resolved build specification.

    Returns:
        Gradle task name.
    """
    if spec.explicit_command is not None:
        return spec.explicit_command
    return COMMAND_VERBS[spec.output_kind] + spec.variant.value.capitalize()


__all__ = ["COMMAND_VERBS", "derive_command"]
