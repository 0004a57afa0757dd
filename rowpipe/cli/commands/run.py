"""Run command implementation with up-front configuration checks."""

import csv
import logging
import os
from argparse import Namespace
from pathlib import Path
from typing import List, Optional, Set

from dotenv import load_dotenv

from rowpipe.exceptions import ConfigValidationError, ValidationError
from rowpipe.exec.step_executor import RequestStepExecutor
from rowpipe.exec.transport import DryRunTransport, HttpTransport
from rowpipe.interactive import ConsoleConfirmer
from rowpipe.loader import RequestSequenceLoader
from rowpipe.pipeline.batch import BatchRunner
from rowpipe.pipeline.orchestrator import RowPipeline
from rowpipe.security.secrets import SecretsManager, install_masking_filter
from rowpipe.sources import RowTable, read_rows
from rowpipe.state import FailureLog
from rowpipe.types import RequestSequence
from rowpipe.variables.substitution import PlaceholderResolver, find_placeholders


logger = logging.getLogger(__name__)

ENDPOINT_ENV = 'ROWPIPE_ENDPOINT'


def configure_logging(args: Namespace):
    """Set up logging from --log-level/--debug/--verbose/--quiet."""
    level_name = 'WARNING' if args.log_level == 'warn' else args.log_level.upper()
    log_level = getattr(logging, level_name)
    if args.debug:
        log_level = logging.DEBUG
    elif args.quiet:
        log_level = logging.ERROR
    elif args.verbose:
        log_level = logging.DEBUG

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def validate_run_config(
    sequence: RequestSequence,
    endpoint_override: Optional[str],
    api_key: Optional[str],
    secondary_csv: Optional[str],
    dry_run: bool = False
) -> None:
    """
    Check everything that would otherwise fail on every row.

    Raises:
        ConfigValidationError: If any request lacks an endpoint with no global
            override, the API key is missing, or loop requests have no
            secondary table
    """
    errors: List[ValidationError] = []

    if not endpoint_override:
        for step in sequence.steps:
            if not step.endpoint:
                errors.append(ValidationError(
                    f"Request '{step.name}' has no endpoint and no --endpoint was given"
                ))

    if not api_key and not dry_run:
        errors.append(ValidationError(
            "API key is required: pass --apikey or set ROWPIPE_API_KEY"
        ))

    if sequence.uses_secondary_rows and not secondary_csv:
        loop_steps = [step.name for step in sequence.steps if step.for_each_secondary_row]
        errors.append(ValidationError(
            f"Requests {loop_steps} loop over secondary rows but no --secondary-csv was given"
        ))

    if errors:
        raise ConfigValidationError(errors)


def warn_unknown_placeholders(
    sequence: RequestSequence,
    columns: Set[str],
    endpoint_override: Optional[str]
) -> None:
    """Warn once about placeholders no column or earlier extraction can supply."""
    available = set(columns)
    for step in sequence.steps:
        templates = [step.payload, endpoint_override or step.endpoint]
        if step.condition is not None:
            templates.extend([step.condition.left, step.condition.right])

        missing = []
        for template in templates:
            for name in find_placeholders(template):
                if name not in available and name.split('.')[0] not in available:
                    missing.append(name)
        if missing:
            names = ', '.join(f"${name}" for name in dict.fromkeys(missing))
            logger.warning(f"Request '{step.name}' references {names} which no column or earlier request provides")
        available.update(spec.field for spec in step.extractions)


def run_batch(args: Namespace) -> int:
    """
    Run every CSV row through the request sequence.

    Returns:
        0 when every row succeeded, 1 on row failures or missing or unreadable
        input files, 2 on configuration errors
    """
    configure_logging(args)
    load_dotenv()

    secrets = SecretsManager()
    install_masking_filter(secrets)

    transport = None
    try:
        csv_path = Path(args.csv)
        config_path = Path(args.config)
        for path in (csv_path, config_path):
            if not path.exists():
                logger.error(f"File not found: {path}")
                return 1

        logger.info(f"Loading configuration: {config_path}")
        loader = RequestSequenceLoader()
        try:
            sequence = loader.load(config_path)
            api_key = secrets.resolve_api_key(args.apikey)
            endpoint_override = args.endpoint or os.environ.get(ENDPOINT_ENV) or None
            validate_run_config(sequence, endpoint_override, api_key, args.secondary_csv, args.dry_run)
        except ConfigValidationError as e:
            for error in e.errors:
                logger.error(f"Validation error: {error.message}")
            return e.exit_code

        secondary: Optional[RowTable] = None
        try:
            table = read_rows(csv_path)
            logger.info(f"CSV file successfully read: {csv_path}. Found {len(table)} rows.")

            if args.secondary_csv:
                secondary = read_rows(args.secondary_csv)
                logger.info(f"Secondary CSV read: {args.secondary_csv}. Found {len(secondary)} rows.")
        except (ValueError, csv.Error) as e:
            # Includes UnicodeDecodeError
            logger.error(f"Could not read CSV input: {e}")
            return 1

        columns = set(table.headers) | (set(secondary.headers) if secondary else set())
        warn_unknown_placeholders(sequence, columns, endpoint_override)

        if endpoint_override:
            logger.info(f"Sending requests to: {endpoint_override}")
        logger.info(f"Delay between rows: {args.delay}ms")

        array_fields = list(sequence.array_fields) + list(args.array_field or [])
        resolver = PlaceholderResolver(array_fields)

        if args.dry_run:
            transport = DryRunTransport()
        else:
            transport = HttpTransport(api_key, headers=sequence.headers, timeout=args.timeout)

        confirmer = ConsoleConfirmer() if args.interactive else None
        executor = RequestStepExecutor(
            transport,
            resolver=resolver,
            endpoint_override=endpoint_override,
            confirmer=confirmer
        )
        pipeline = RowPipeline(sequence, executor)

        failure_log = FailureLog(Path(args.error_log), mask=secrets.mask_value) if args.error_log else None
        runner = BatchRunner(
            pipeline,
            delay_ms=args.delay,
            failure_log=failure_log,
            confirmer=confirmer
        )

        summary = runner.run(table.rows, secondary.rows if secondary else None)
        if failure_log is not None and failure_log.records_written:
            logger.info(f"Wrote {failure_log.records_written} failure records to {failure_log.path}")

        if args.dry_run:
            logger.info(f"[DRY RUN] {transport.requests_logged} requests resolved, none sent")
            return 0

        return 0 if summary.failed == 0 else 1

    except FileNotFoundError as e:
        logger.error(f"File not found: {e}")
        return 1
    except ValueError as e:
        logger.error(f"Invalid input: {e}")
        return 2
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return 1
    finally:
        if transport is not None:
            transport.close()
