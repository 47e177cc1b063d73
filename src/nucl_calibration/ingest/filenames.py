"""Extract run metadata from instrument export file names.

File names follow ``<date>_<...>_<tag>_<calcurve>_<replicate>.unknown`` for
calibration runs and ``<date>_<...>_<file_tag>_<...>.unknown`` for samples,
with ``_`` as the field delimiter.
"""

from pathlib import Path

from nucl_calibration.errors import MalformedFileNameError, ParseError
from nucl_calibration.ingest.models import MODES, REQUIRED_TOKENS, FileMetadata


def parse_file_name(file_name: str | Path, mode: str) -> FileMetadata:
    """Parse the `_`-delimited tokens of an export file name.

    Args:
        file_name: File name or path; only the base name is parsed
        mode: "cal" or "samples"

    Returns:
        FileMetadata with the mode-specific fields populated

    Raises:
        ValueError: If mode is unknown
        MalformedFileNameError: If the name has too few tokens for the mode
        ParseError: If the calibration replicate token is not an integer
    """
    if mode not in MODES:
        raise ValueError(f"Unknown mode '{mode}', expected one of {MODES}")

    name = Path(file_name).name
    tokens = name.split("_")
    required = REQUIRED_TOKENS[mode]

    if len(tokens) < required:
        raise MalformedFileNameError(name, mode, required, len(tokens))

    if mode == "cal":
        replicate_token = tokens[4].split(".")[0]
        try:
            repl_calcurve = int(replicate_token)
        except ValueError:
            raise ParseError(
                f"Replicate token '{replicate_token}' in '{name}' is not numeric"
            ) from None

        return FileMetadata(
            file_name=name,
            mode=mode,
            date=tokens[0],
            calcurve=tokens[3],
            repl_calcurve=repl_calcurve,
        )

    file_tag = tokens[2]
    if len(tokens) == required:
        # last token still carries the extension
        file_tag = Path(file_tag).stem

    return FileMetadata(
        file_name=name,
        mode=mode,
        date=tokens[0],
        file_tag=file_tag,
    )
