"""Log Masker - CLI for masking sensitive data in existing log files."""

import json
import logging
import sys
from pathlib import Path
from typing import Dict, Iterable, Optional, TextIO

import click

from config import load_policy
from enricher import LogRecordView, enrich, mask_text
from logging_filter import SensitiveDataFilter
from policy import MaskingPolicy


CONSOLE_HANDLER_NAME = 'logmask-console'


def setup_logging(policy: MaskingPolicy, verbose: bool = False) -> logging.Logger:
    """Configure console logging on stderr.

    Args:
        policy: Masking policy applied to the tool's own log output
        verbose: Enable debug logging

    Returns:
        Configured logger
    """
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.set_name(CONSOLE_HANDLER_NAME)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))

    # Add sensitive data filter
    console_handler.addFilter(SensitiveDataFilter(policy))

    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    # Replace the handler from a previous run in the same process
    for handler in list(logger.handlers):
        if handler.get_name() == CONSOLE_HANDLER_NAME:
            logger.removeHandler(handler)
    logger.addHandler(console_handler)

    return logger


def mask_json_line(line: str, policy: MaskingPolicy, message_key: str) -> str:
    """Mask one JSON log event.

    A string message_key field is treated as the rendered message; every
    other top-level field is a named property.

    Args:
        line: JSON object text
        policy: Masking policy
        message_key: Field holding the rendered message

    Returns:
        Masked JSON text, the line itself if nothing was masked, or plain
        text masking if the line is not a JSON object
    """
    try:
        event = json.loads(line)
    except json.JSONDecodeError:
        return mask_text(line, policy)

    if not isinstance(event, dict):
        return mask_text(line, policy)

    message = event.get(message_key)
    if isinstance(message, str):
        properties = {name: value for name, value in event.items() if name != message_key}
    else:
        message = ''
        properties = dict(event)

    record = enrich(LogRecordView(message, dict(properties)), policy)
    if record.rendered_text == message and record.properties == properties:
        return line

    if record.rendered_text != message:
        event[message_key] = record.rendered_text
    event.update(record.properties)

    return json.dumps(event, ensure_ascii=False)


def mask_lines(
    lines: Iterable[str],
    output: TextIO,
    policy: MaskingPolicy,
    json_lines: bool = False,
    message_key: str = 'message'
) -> Dict[str, int]:
    """Mask lines and write them to output.

    Args:
        lines: Input lines (with or without line endings)
        output: Writable text stream
        policy: Masking policy
        json_lines: Treat each line as a JSON log event
        message_key: Field holding the rendered message in JSON mode

    Returns:
        Dict with 'lines' and 'masked' counts
    """
    stats = {'lines': 0, 'masked': 0}

    for line in lines:
        text = line.rstrip('\r\n')
        ending = line[len(text):]

        if json_lines and text.strip():
            masked = mask_json_line(text, policy, message_key)
        else:
            masked = mask_text(text, policy)

        output.write(masked + ending)
        stats['lines'] += 1
        if masked != text:
            stats['masked'] += 1

    return stats


@click.command()
@click.argument('files', nargs=-1, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    '--output', '-o',
    type=click.Path(dir_okay=False, path_type=Path),
    help='Write masked output to this file (default: stdout)'
)
@click.option(
    '--config', '-c', 'policy_file',
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='JSON policy file (mask_value, force_mask, never_mask, operators, custom_patterns)'
)
@click.option('--mask-value', help='Text substituted for sensitive data')
@click.option(
    '--pattern', '-p', 'patterns',
    multiple=True,
    help='Additional regular expression to mask (repeatable)'
)
@click.option(
    '--force-mask', 'force_mask',
    multiple=True,
    help='Property name to always mask in JSON mode (repeatable)'
)
@click.option(
    '--never-mask', 'never_mask',
    multiple=True,
    help='Property name to never mask in JSON mode (repeatable)'
)
@click.option(
    '--no-default-operators',
    is_flag=True,
    help='Disable the email, IBAN and credit card operators'
)
@click.option(
    '--json-lines',
    is_flag=True,
    help='Treat each line as a JSON log event'
)
@click.option(
    '--message-key',
    default='message',
    show_default=True,
    help='JSON field holding the rendered message'
)
@click.option(
    '--verbose', '-v',
    is_flag=True,
    help='Enable debug logging'
)
def main(
    files: tuple,
    output: Optional[Path],
    policy_file: Optional[Path],
    mask_value: Optional[str],
    patterns: tuple,
    force_mask: tuple,
    never_mask: tuple,
    no_default_operators: bool,
    json_lines: bool,
    message_key: str,
    verbose: bool
):
    """Log Masker.

    Mask email addresses, IBANs, credit card numbers and custom patterns
    in existing log files. Reads stdin when no files are given.

    Examples:

        \b
        # Mask a log file to stdout
        logmask app.log

        \b
        # Structured logs, always mask the Password property
        logmask events.jsonl --json-lines --force-mask Password -o clean.jsonl

        \b
        # Only a custom pattern
        logmask app.log --no-default-operators --pattern 'token=\\w+'
    """
    try:
        policy = load_policy(
            policy_file,
            mask_value=mask_value,
            force_mask=list(force_mask) or None,
            never_mask=list(never_mask) or None,
            operators=[] if no_default_operators else None,
            custom_patterns=list(patterns) or None,
            # Files are masked unconditionally, there is no sensitive area here
            mode='always'
        )
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    logger = setup_logging(policy, verbose)
    logger.debug(f"Using {len(policy.operators)} operators")

    out = open(output, 'w', encoding='utf-8') if output else sys.stdout
    totals = {'lines': 0, 'masked': 0}

    try:
        sources = files or (None,)
        for source in sources:
            if source is None:
                stats = mask_lines(sys.stdin, out, policy, json_lines, message_key)
            else:
                logger.info(f"Masking {source}")
                with open(source, 'r', encoding='utf-8', errors='replace') as f:
                    stats = mask_lines(f, out, policy, json_lines, message_key)
            totals['lines'] += stats['lines']
            totals['masked'] += stats['masked']
    finally:
        if output:
            out.close()

    logger.info(f"Processed {totals['lines']} lines, masked {totals['masked']}")


if __name__ == '__main__':
    main()
