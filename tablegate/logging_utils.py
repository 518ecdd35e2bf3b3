# tablegate/logging_utils.py
"""
Logging setup for scripts that run bulk loads.

Each run writes ``<script>_<timestamp>.log``; ERROR records also go to a
separate ``<script>_<timestamp>_error.log`` that is only created once the
first error is logged, so an empty directory listing means a clean run.
"""

import logging
import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional, Tuple

from .defaults import settings

logger = logging.getLogger(__name__)

# Module-level state for error tracking
_error_handler: Optional['ErrorCountHandler'] = None
_main_log_path: Optional[str] = None
_error_log_path: Optional[str] = None


class ErrorCountHandler(logging.Handler):
    """Counts ERROR and CRITICAL records and opens the error log on the first one."""

    def __init__(self, error_log_path: Optional[str] = None, formatter: Optional[logging.Formatter] = None):
        super().__init__(level=logging.ERROR)
        self.error_count = 0
        self.error_log_path = error_log_path
        self.formatter = formatter
        self._error_file_handler = None

    def emit(self, record):
        if record.levelno < logging.ERROR:
            return
        self.error_count += 1
        if self.error_log_path and self._error_file_handler is None:
            self._open_error_log()

    def _open_error_log(self):
        try:
            handler = logging.FileHandler(self.error_log_path, encoding='utf-8')
        except OSError as e:
            logger.warning(f"Failed to create error log file: {e}")
            return
        handler.setLevel(logging.ERROR)
        if self.formatter:
            handler.setFormatter(self.formatter)
        self._error_file_handler = handler
        # appended while the root logger is still dispatching, so it also receives this record
        logging.getLogger().addHandler(handler)


def _logging_settings() -> dict:
    return settings.get('logging') or {}


def _log_paths(script_name: str, log_dir: Path, filename_format: str, split_errors: bool) -> Tuple[Path, Optional[Path]]:
    stem = f"{script_name}_{datetime.now().strftime(filename_format)}" if filename_format else script_name
    error_file = log_dir / f"{stem}_error.log" if split_errors else None
    return log_dir / f"{stem}.log", error_file


def setup_logging(
    script_name: Optional[str] = None,
    log_dir: Optional[str] = None,
    level: Optional[str] = None,
    split_errors: Optional[bool] = None,
    console: Optional[bool] = None
) -> Tuple[str, Optional[str]]:
    """
    Configure root logging for a bulk load script.

    Unset arguments fall back to ``settings['logging']``, which a
    ``logging`` block in tablegate.yml overrides.

    Args:
        script_name: Base name for log files (defaults to script filename without extension)
        log_dir: Directory for log files
        level: DEBUG, INFO, WARNING or ERROR; DEBUG includes every generated statement
        split_errors: Also write ERROR records to a separate file
        console: Also log to stdout

    Returns:
        Tuple of (log_file_path, error_log_path or None)

    Example
    -------
    ::
        import tablegate

        tablegate.setup_logging('nightly_price_sync')
        db = tablegate.connect('shop')
        tablegate.TableGateway(db, 'products').bulk_update(rows, join_columns=['sku'])

    Note:
        ``logging.filename_format`` controls file naming:
        '%Y%m%d_%H%M%S' one log per run (default), '%Y%m%d' one per day,
        '' a single log file that is appended to.
    """
    global _error_handler, _main_log_path, _error_log_path

    if script_name is None:
        script_name = Path(sys.argv[0]).stem or 'tablegate'

    config = _logging_settings()
    log_dir = log_dir or config.get('directory', './logs')
    level = (level or config.get('level', 'INFO')).upper()
    split_errors = split_errors if split_errors is not None else config.get('split_errors', True)
    console = console if console is not None else config.get('console', True)
    formatter = logging.Formatter(
        config.get('format', '%(asctime)s [%(levelname)s] %(name)s: %(message)s'),
        datefmt=config.get('timestamp_format', '%Y-%m-%d %H:%M:%S')
    )

    log_dir_path = Path(log_dir)
    log_dir_path.mkdir(parents=True, exist_ok=True)
    log_file, error_file = _log_paths(script_name, log_dir_path, config.get('filename_format', '%Y%m%d_%H%M%S'),
                                      split_errors)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level))
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    _error_handler = ErrorCountHandler(error_log_path=str(error_file) if error_file else None, formatter=formatter)
    root_logger.addHandler(_error_handler)

    file_handler = logging.FileHandler(log_file, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(getattr(logging, level))
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    logging.info(f"Logging initialized: {log_file}")
    if error_file:
        logging.info(f"Error log will be created at: {error_file} (if errors occur)")

    _main_log_path = str(log_file)
    _error_log_path = str(error_file) if error_file else None
    return _main_log_path, _error_log_path


def errors_logged() -> Optional[str]:
    """
    Path of the log holding this run's errors, or None if there were none.

    The error log is returned when errors are split out, the main log
    otherwise. Returns None too when setup_logging() was never called.

    Example
    -------
    ::

        tablegate.setup_logging('nightly_price_sync')
        try:
            gateway.bulk_update(rows, join_columns=['sku'])
        except tablegate.TableGateError as e:
            logging.error(f"Price sync failed: {e}")

        error_log = tablegate.errors_logged()
        if error_log:
            print(f"Errors detected! See: {error_log}")
    """
    if _error_handler is None:
        logger.warning("errors_logged() called but setup_logging() was not called")
        return None
    if _error_handler.error_count == 0:
        return None
    return _error_log_path or _main_log_path


def cleanup_old_logs(
    log_dir: Optional[str] = None,
    retention_days: Optional[int] = None,
    pattern: str = "*.log",
    dry_run: bool = False
) -> List[str]:
    """
    Remove log files older than the retention period.

    Args:
        log_dir: Directory to clean (defaults to ``settings['logging']['directory']``)
        retention_days: Keep logs newer than this many days (defaults to the setting, 30)
        pattern: Glob pattern for log files
        dry_run: Only report what would be deleted

    Returns:
        List of deleted (or would-be-deleted if dry_run) file paths
    """
    config = _logging_settings()
    log_dir_path = Path(log_dir or config.get('directory', './logs'))
    retention_days = retention_days or config.get('retention_days', 30)

    if not log_dir_path.exists():
        logger.warning(f"Log directory does not exist: {log_dir_path}")
        return []

    cutoff = datetime.now() - timedelta(days=retention_days)
    deleted = []

    for log_file in log_dir_path.glob(pattern):
        if not log_file.is_file():
            continue
        if datetime.fromtimestamp(log_file.stat().st_mtime) >= cutoff:
            continue
        if dry_run:
            logger.info(f"Would delete: {log_file}")
        else:
            try:
                log_file.unlink()
            except OSError as e:
                logger.warning(f"Failed to delete {log_file}: {e}")
                continue
            logger.info(f"Deleted old log: {log_file}")
        deleted.append(str(log_file))

    if not dry_run and deleted:
        logger.info(f"Cleaned up {len(deleted)} old log files")
    return deleted
