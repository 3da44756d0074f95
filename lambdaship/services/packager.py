# lambdaship/services/packager.py
import io
import logging
import os
import subprocess
import tempfile
import zipfile
from typing import BinaryIO

from lambdaship.errors import BuildError

logger = logging.getLogger(__name__)

GO_BIN = os.environ.get("GO_BIN", "go")
BOOTSTRAP = "bootstrap"


def build(path: str) -> bytes:
    """
    Compile the Go handler at ``path`` for linux/arm64 and wrap the binary the
    way the provided.al2023 runtime expects: a zip holding one executable
    named ``bootstrap``.
    """
    return zip_code(build_binary(path))


def build_binary(path: str) -> bytes:
    env = dict(os.environ, GOOS="linux", GOARCH="arm64", CGO_ENABLED="0")
    with tempfile.TemporaryDirectory() as td:
        output = os.path.join(td, BOOTSTRAP)
        # go build -tags lambda.norpc -o bootstrap main.go
        cmd = [GO_BIN, "build", "-tags", "lambda.norpc", "-o", output, path]
        logger.info(f"Building {path}")
        try:
            proc = subprocess.run(cmd, env=env, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, check=False)
        except OSError as e:
            raise BuildError(f"error running {GO_BIN}: {e}") from e
        if proc.returncode != 0:
            raise BuildError(
                f"error building lambda function: exit status {proc.returncode}, "
                f"{proc.stdout.decode('utf-8', errors='replace')}"
            )
        with open(output, "rb") as f:
            return f.read()


def zip_code(code: bytes) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        info = zipfile.ZipInfo(BOOTSTRAP)
        info.compress_type = zipfile.ZIP_DEFLATED
        info.create_system = 3  # unix, so the mode bits below are honoured
        info.external_attr = (0o100755 & 0xFFFF) << 16
        zf.writestr(info, code)
    return buf.getvalue()


def package_to(path: str, out: BinaryIO) -> None:
    out.write(build(path))
