"""Init command: derive a request configuration skeleton from CSV headers."""

import json
import logging
from argparse import Namespace
from pathlib import Path
from typing import Any, Dict, List

import yaml

from rowpipe.sources import read_rows
from rowpipe.variables.substitution import PlaceholderResolver


logger = logging.getLogger(__name__)


def build_skeleton(headers: List[str], endpoint: str = '') -> Dict[str, Any]:
    """
    Build a one-request configuration mapping every column to its placeholder.

    Args:
        headers: CSV column headers
        endpoint: Endpoint for the generated request

    Returns:
        Configuration dict in the 'requests' form
    """
    payload = {}
    for header in headers:
        if not header:
            continue
        placeholder = f"${header}"
        if not PlaceholderResolver.LEAF_PATTERN.match(placeholder):
            logger.warning(f"Column '{header}' is not usable as a placeholder name; edit its entry by hand")
        payload[header] = placeholder

    return {
        "requests": [
            {
                "name": "request_1",
                "method": "POST",
                "endpoint": endpoint,
                "payloadTemplate": payload,
            }
        ]
    }


def scaffold_config(args: Namespace) -> int:
    """
    Write a configuration skeleton for a CSV file.

    Returns:
        0 on success, 1 if the CSV is missing or the output exists without --force
    """
    logging.basicConfig(level=logging.INFO, format='%(levelname)s - %(message)s')

    output = Path(args.output)
    if output.exists() and not args.force:
        logger.error(f"Configuration file already exists: {output} (use --force to overwrite)")
        return 1

    try:
        table = read_rows(args.csv)
    except (FileNotFoundError, ValueError) as e:
        logger.error(str(e))
        return 1

    skeleton = build_skeleton(table.headers, args.endpoint)

    output.parent.mkdir(parents=True, exist_ok=True)
    with open(output, 'w', encoding='utf-8') as f:
        if output.suffix.lower() in ('.yaml', '.yml'):
            yaml.safe_dump(skeleton, f, sort_keys=False)
        else:
            json.dump(skeleton, f, indent=2)
            f.write("\n")

    logger.info(f"Wrote configuration with {len(skeleton['requests'][0]['payloadTemplate'])} fields to {output}")
    return 0
