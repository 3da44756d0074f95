# lambdaship/services/validator.py
"""
Light check that a Go source file can serve as a Lambda handler.

A valid handler for our purposes:

1. declares a package,
2. contains a ``func main()``,
3. calls one of the ``lambda.Start...`` functions.

Comments and string literals are blanked before matching so a commented-out
``lambda.Start`` does not count.
"""
import logging
import re

from lambdaship.errors import HandlerValidationError

logger = logging.getLogger(__name__)

_NOISE = re.compile(
    r"/\*.*?\*/"            # block comment
    r"|//[^\n]*"            # line comment
    r"|`[^`]*`"             # raw string
    r'|"(?:\\.|[^"\\\n])*"'  # interpreted string
    r"|'(?:\\.|[^'\\\n])+'",  # rune
    re.DOTALL,
)
_PACKAGE = re.compile(r"^\s*package\s+\w+", re.MULTILINE)
_MAIN = re.compile(r"\bfunc\s+main\s*\(\s*\)")
_START_CALL = re.compile(r"\.\s*Start\w*\s*\(")


def strip_noise(source: str) -> str:
    return _NOISE.sub(" ", source)


def validate(path: str) -> None:
    try:
        with open(path, "r", encoding="utf-8") as f:
            source = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise HandlerValidationError(f"failure in reading {path}: {e}") from e

    code = strip_noise(source)
    if not _PACKAGE.search(code):
        raise HandlerValidationError(f"failure in parsing {path}: missing package clause")
    if not _MAIN.search(code):
        raise HandlerValidationError("main function not found in packaged function")
    if not _START_CALL.search(code):
        raise HandlerValidationError("main function does not call lambda.Start(handler)")
    logger.info(f"Handler {path} looks valid")
