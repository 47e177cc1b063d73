"""Exception taxonomy for the import and evaluation pipeline."""


class NuclCalibrationError(Exception):
    """Base class for all pipeline errors."""


class MalformedFileNameError(NuclCalibrationError):
    """File name has fewer `_`-delimited tokens than the mode requires."""

    def __init__(self, file_name: str, mode: str, required: int, found: int):
        self.file_name = file_name
        self.mode = mode
        self.required = required
        self.found = found
        super().__init__(
            f"File name '{file_name}' has {found} '_'-delimited tokens, "
            f"mode '{mode}' requires at least {required}"
        )


class SchemaError(NuclCalibrationError):
    """A required column is absent or cannot be resolved unambiguously."""


class SchemaMismatchError(NuclCalibrationError):
    """Tables to be stacked do not share the same column set."""


class ParseError(NuclCalibrationError):
    """A value could not be parsed where a numeric value is expected."""


class ImportFailedError(NuclCalibrationError):
    """One or more input files failed to import.

    Attributes:
        failures: List of (file name, exception) pairs, in processing order
    """

    def __init__(self, failures: list[tuple[str, Exception]]):
        self.failures = failures
        lines = [f"  {name}: {type(exc).__name__}: {exc}" for name, exc in failures]
        super().__init__(
            f"{len(failures)} file(s) failed to import:\n" + "\n".join(lines)
        )
