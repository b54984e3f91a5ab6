import sys
import time
import logging
from typing import List, Optional, Union

from .cli import parse_cmdline_args
from .exceptions import (
    VulnrepError,
    ConfigurationError,
    ValidationError,
    ParseError,
    EncodeError,
    FileSystemError,
)
from .handlers import (
    handle_convert,
    handle_validate,
)

COMMAND_HANDLERS = {
    "convert": handle_convert,
    "validate": handle_validate,
}


def format_duration(duration_seconds: Optional[Union[int, float]]) -> str:
    """Formats a duration in seconds into a 'X minutes, Y seconds' string."""
    if duration_seconds is None: return "N/A"
    try:
        duration_seconds = round(float(duration_seconds), 2)
    except (ValueError, TypeError):
        return "Invalid Duration"

    minutes, seconds = divmod(duration_seconds, 60)
    if minutes > 0: return f"{int(minutes)} minutes, {seconds:.0f} seconds"
    return f"{seconds:.2f} seconds"


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main function to parse arguments, set up logging and dispatch to the
    appropriate command handler.
    Returns an exit code (0 for success, non-zero for failure).
    """
    start_time = time.monotonic()
    exit_code = 1 # Default to failure
    logger = None

    try:
        params = parse_cmdline_args(argv)

        # Setup logging
        log_level = getattr(logging, params.log.upper(), logging.INFO)
        # Configure file handler (overwrite mode) and stream handler
        logging.basicConfig(level=log_level,
                            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                            handlers=[logging.FileHandler("vulnrep-cli-log.txt", mode='w')],
                            force=True) # Use force=True to allow reconfiguration if run multiple times

        # Console output goes to stderr; stdout may carry the converted document
        console_handler = logging.StreamHandler(sys.stderr)
        console_formatter = logging.Formatter('%(levelname)s: %(message)s')
        console_handler.setFormatter(console_formatter)
        console_handler.setLevel(log_level)
        logging.getLogger().addHandler(console_handler)

        logger = logging.getLogger("vulnrep-cli")

        # Print Configuration for this Run
        print("--- vulnrep CLI Configuration ---", file=sys.stderr)
        print(f"Command: {params.command}", file=sys.stderr)
        for k, v in sorted(params.__dict__.items()):
            if k == 'command': continue
            print(f"  {k:<30} = {v}", file=sys.stderr)
        print("---------------------------------", file=sys.stderr)
        logger.debug("Parsed parameters: %s", params)

        # --- Command Dispatch ---
        handler = COMMAND_HANDLERS.get(params.command)

        if handler:
            handler(params) # Handlers raise exceptions on failure
            exit_code = 0
            print("\nvulnrep CLI finished successfully.", file=sys.stderr)
        else:
            print(f"Error: Unknown command '{params.command}'.", file=sys.stderr)
            logger.error(f"Unknown command '{params.command}' encountered in main dispatch.")
            exit_code = 1

    # --- Unified Exception Handling ---
    except (ConfigurationError, ValidationError, ParseError) as e:
        # Errors caused by the input, no traceback needed in the log
        print(f"\nDetailed Error Information:", file=sys.stderr)
        print(f"Runtime Error: {e}", file=sys.stderr)
        if logger: logger.error("%s: %s", type(e).__name__, e, exc_info=False)
        return 1
    except (EncodeError, FileSystemError) as e:
        print(f"\nDetailed Error Information:", file=sys.stderr)
        print(f"Runtime Error: {e}", file=sys.stderr)
        if logger: logger.error("%s: %s", type(e).__name__, e, exc_info=True)
        return 1
    except VulnrepError as e:
        print(f"\nDetailed Error Information:", file=sys.stderr)
        print(f"vulnrep CLI Error: {e}", file=sys.stderr)
        if logger: logger.error("Unhandled VulnrepError: %s", e, exc_info=True)
        return 1
    except Exception as e:
        print(f"\nDetailed Error Information:", file=sys.stderr)
        print(f"Unexpected Error: {e}", file=sys.stderr)
        if logger: logger.critical("Unexpected error occurred", exc_info=True)
        return 1
    finally:
        duration_str = format_duration(time.monotonic() - start_time)
        print(f"\nTotal Execution Time: {duration_str}", file=sys.stderr)
        if logger: logger.info("Total execution time: %s", duration_str)

    return exit_code


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
