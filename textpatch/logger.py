import logging
from pathlib import Path

LOG_DIR = Path.cwd() / "logs"
LOG_FILE = LOG_DIR / "app.log"

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Current log mode: 'off', 'info' or 'debug'
_log_mode = 'info'
_file_logging = False


def _level_for(log_mode: str) -> int:
    if log_mode == 'debug':
        return logging.DEBUG
    if log_mode == 'off':
        # Off mode: a level higher than CRITICAL disables all output
        return logging.CRITICAL + 1
    return logging.INFO


def _file_handler() -> logging.FileHandler:
    LOG_DIR.mkdir(exist_ok=True)
    f_handler = logging.FileHandler(LOG_FILE, encoding='utf-8')
    f_handler.setLevel(logging.DEBUG)
    f_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return f_handler


def _configure(logger: logging.Logger):
    """Bring a logger's level and handlers in line with the current mode."""
    level = _level_for(_log_mode)
    logger.setLevel(level)

    has_file_handler = any(isinstance(h, logging.FileHandler) for h in logger.handlers)

    # Add or remove FileHandler based on log mode
    if _file_logging and _log_mode != 'off' and not has_file_handler:
        logger.addHandler(_file_handler())
    elif (not _file_logging or _log_mode == 'off') and has_file_handler:
        handlers_to_remove = [h for h in logger.handlers if isinstance(h, logging.FileHandler)]
        for handler in handlers_to_remove:
            handler.close()
            logger.removeHandler(handler)

    # Update console handlers
    for handler in logger.handlers:
        if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
            handler.setLevel(level)


def set_log_mode(log_mode: str, log_to_file: bool = False):
    """Switch log mode and update all loggers created by get_logger."""
    global _log_mode, _file_logging
    _log_mode = log_mode if log_mode in ('off', 'info', 'debug') else 'info'
    _file_logging = log_to_file

    # Only update loggers that have handlers (i.e., were created by get_logger)
    for logger_name in list(logging.Logger.manager.loggerDict.keys()):
        logger = logging.getLogger(logger_name)
        if logger.handlers and logger_name.startswith('textpatch'):
            _configure(logger)


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)

    # Prevent duplicate handlers if logger already configured
    if logger.handlers:
        _configure(logger)
        return logger

    c_handler = logging.StreamHandler()
    c_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(c_handler)
    _configure(logger)

    return logger
