"""
Run log for the crime atlas.

Each analysis run appends one JSON object per line to
logs/<script>_<run_id>.jsonl. Besides free-form messages the run log holds
the records a run is audited from: the redacted configuration and its
digest, the hashed input file, the CRS of the projected points, and the
final metrics (row counts, cluster sizes, reproducibility check).
"""

import json
import logging
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from crime_atlas.paths import LOGS_DIR


LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


def generate_run_id() -> str:
    """Return '<UTC yyyymmdd>_<hhmmss>_<8 hex chars>'."""
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return f"{stamp}_{uuid.uuid4().hex[:8]}"


def get_versions() -> dict[str, str]:
    """Versions of the interpreter and of the libraries that shape the results."""
    import geopandas
    import numpy
    import pandas
    import pyproj
    import shapely
    import sklearn

    return {
        "python": sys.version.split()[0],
        "pandas": pandas.__version__,
        "numpy": numpy.__version__,
        "geopandas": geopandas.__version__,
        "shapely": shapely.__version__,
        "pyproj": pyproj.__version__,
        "scikit-learn": sklearn.__version__,
    }


class JSONLLogger:
    """
    Writes the run log of one analysis run.

    The pipeline stages receive this object as `logger` and call
    info/warning/error on it; the run script adds the audit records.

        with get_logger("run_analysis") as logger:
            logger.log_config(config.to_dict(), config_digest=digest)
            result = run_pipeline(config, logger)
    """

    def __init__(
        self,
        script_name: str,
        run_id: Optional[str] = None,
        log_dir: Optional[Path] = None,
        console: bool = True,
    ):
        """
        Args:
            script_name: Prefix of the log file name
            run_id: Identifier shared by every record (generated if omitted)
            log_dir: Where the .jsonl file goes (default: logs/)
            console: Also echo INFO and above to stdout
        """
        self.script_name = script_name
        self.run_id = run_id or generate_run_id()
        self.log_dir = LOGS_DIR if log_dir is None else Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.log_file = self.log_dir / f"{script_name}_{self.run_id}.jsonl"
        self._file_handle = open(self.log_file, "a", encoding="utf-8")

        self._logger = logging.getLogger(f"crime_atlas.{script_name}")
        self._logger.setLevel(logging.DEBUG)
        self._console_handler = None
        if console:
            handler = logging.StreamHandler(sys.stdout)
            handler.setLevel(logging.INFO)
            handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(message)s"))
            self._logger.addHandler(handler)
            self._console_handler = handler

        self._write_record(
            "INFO",
            "Logger initialized",
            {
                "script_name": script_name,
                "run_id": self.run_id,
                "log_file": str(self.log_file),
                "versions": get_versions(),
            },
        )

    def _write_record(self, level: str, message: str, extra: Optional[dict[str, Any]] = None) -> None:
        record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "script_name": self.script_name,
            "run_id": self.run_id,
            "level": level,
            "message": message,
        }
        if extra:
            record["extra"] = extra
        # Paths, numpy scalars and Timestamps are written via str()
        self._file_handle.write(json.dumps(record, default=str) + "\n")
        self._file_handle.flush()

    def log(self, level: str, message: str, extra: Optional[dict[str, Any]] = None) -> None:
        """Append a record at `level` and echo it to the console handler."""
        self._write_record(level, message, extra)
        self._logger.log(LEVELS[level], message)

    def debug(self, message: str, extra: Optional[dict[str, Any]] = None) -> None:
        self.log("DEBUG", message, extra)

    def info(self, message: str, extra: Optional[dict[str, Any]] = None) -> None:
        self.log("INFO", message, extra)

    def warning(self, message: str, extra: Optional[dict[str, Any]] = None) -> None:
        self.log("WARNING", message, extra)

    def error(self, message: str, extra: Optional[dict[str, Any]] = None) -> None:
        self.log("ERROR", message, extra)

    # Audit records: file only, never echoed

    def log_config(self, config: dict[str, Any], config_digest: Optional[str] = None) -> None:
        """Record the run configuration. Pass PipelineConfig.to_dict(), which masks the token."""
        self._write_record(
            "INFO", "Configuration loaded", {"config": config, "config_digest": config_digest}
        )

    def log_inputs(self, inputs: dict[str, Any]) -> None:
        """Record the incident file path and its SHA-256."""
        self._write_record("INFO", "Inputs registered", {"inputs": inputs})

    def log_metrics(self, metrics: dict[str, Any]) -> None:
        self._write_record("INFO", "Metrics recorded", {"metrics": metrics})

    def log_crs_info(self, crs_info: dict[str, Any]) -> None:
        """Record the CRS summary of the projected incident points (see qa.crs_info)."""
        self._write_record("INFO", "CRS info recorded", {"crs_info": crs_info})

    def close(self) -> None:
        """Write the closing record and release the file and console handler."""
        self._write_record("INFO", "Logger closing", {"run_id": self.run_id})
        self._file_handle.close()
        if self._console_handler is not None:
            self._logger.removeHandler(self._console_handler)
            self._console_handler = None

    def __enter__(self) -> "JSONLLogger":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is not None:
            self.error(
                f"Exception occurred: {exc_type.__name__}: {exc_val}",
                extra={"traceback": str(exc_tb)},
            )
        self.close()


def get_logger(
    script_name: str,
    run_id: Optional[str] = None,
    log_dir: Optional[Path] = None,
) -> JSONLLogger:
    """Open the run log for `script_name` with console echo on."""
    return JSONLLogger(script_name=script_name, run_id=run_id, log_dir=log_dir)
