"""
Logging filter for sensitive data masking.

This module provides the SensitiveDataFilter class that masks email
addresses, IBANs, credit card numbers and user-declared patterns in log
records before any handler writes them.

Usage:
    import logging
    from logging_filter import SensitiveDataFilter

    # Add to a handler so every record it emits is masked
    handler = logging.StreamHandler()
    handler.addFilter(SensitiveDataFilter())
"""

import logging
from collections.abc import Mapping
from contextvars import ContextVar
from typing import Any, Dict, Iterable, Optional

from enricher import LogRecordView, enrich, is_masking_active, mask_text
from policy import MaskingPolicy


logger = logging.getLogger(__name__)

# Set while a record is being masked; records the engine logs meanwhile
# (operator or property failures) pass through unmasked
_masking_in_progress: ContextVar[bool] = ContextVar('masking_in_progress', default=False)


# Attributes every LogRecord carries; anything else came from extra=
STANDARD_RECORD_ATTRIBUTES = frozenset(
    logging.LogRecord('', logging.INFO, '', 0, '', (), None).__dict__
) | {'message', 'asctime', 'taskName'}


def _extra_properties(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        name: value
        for name, value in record.__dict__.items()
        if name not in STANDARD_RECORD_ATTRIBUTES and not name.startswith('_')
    }


def _argument_properties(args: Any) -> Dict[str, Any]:
    if isinstance(args, Mapping):
        return {str(name): value for name, value in args.items()}
    if isinstance(args, tuple):
        return {str(index): value for index, value in enumerate(args)}
    return {}


def _restore_arguments(args: Any, properties: Dict[str, Any]) -> Any:
    if isinstance(args, Mapping):
        return {name: properties[str(name)] for name in args}
    if isinstance(args, tuple):
        return tuple(properties[str(index)] for index in range(len(args)))
    return args


class SensitiveDataFilter(logging.Filter):
    """
    Mask sensitive data in log records.

    Each record is exposed to the masking engine as its rendered message
    plus named properties: the %-style arguments (mapping keys, or
    positions "0", "1", ...) and any attributes supplied through extra=.
    The masked values are written back to the record.

    The message template is kept when re-rendering it with the masked
    arguments gives the masked message; otherwise the masked message
    replaces record.msg and record.args is cleared.

    Attributes:
        policy: Masking policy applied to every record

    Examples:
        >>> handler = logging.StreamHandler()
        >>> handler.addFilter(SensitiveDataFilter())
        >>> logger.addHandler(handler)
        >>> logger.info("Sent to %s", "james.bond@universalexports.co.uk")
        Sent to ***MASKED***
    """

    def __init__(self, policy: Optional[MaskingPolicy] = None, name: str = ''):
        """
        Initialize filter.

        Args:
            policy: Masking policy (default: shipped operators, always on)
            name: Logger name restriction, as for logging.Filter
        """
        super().__init__(name)
        self.policy = policy if policy is not None else MaskingPolicy()

    def filter(self, record: logging.LogRecord) -> bool:
        """
        Filter log record by masking sensitive data.

        Args:
            record: Log record to filter

        Returns:
            bool: Always True (allows record to be logged after masking)
        """
        if _masking_in_progress.get():
            return True
        if not super().filter(record) or not is_masking_active(self.policy):
            return True

        token = _masking_in_progress.set(True)
        try:
            self._mask_record(record)
        except Exception as e:
            logger.warning(f"Could not mask log record: {type(e).__name__}")
        finally:
            _masking_in_progress.reset(token)

        return True

    def _mask_record(self, record: logging.LogRecord) -> None:
        rendered = record.getMessage()
        arguments = _argument_properties(record.args)

        # Arguments and extras may share a name; keep them apart
        view = enrich(LogRecordView(rendered, dict(arguments)), self.policy)
        extras = enrich(LogRecordView('', _extra_properties(record)), self.policy)

        for name, value in extras.properties.items():
            setattr(record, name, value)

        if view.properties != arguments:
            record.args = _restore_arguments(record.args, view.properties)
            try:
                rendered = record.getMessage()
            except (TypeError, ValueError, KeyError):
                # Masked arguments no longer fit the template conversions
                record.msg, record.args = view.rendered_text, None
                return
            masked = mask_text(rendered, self.policy)
        else:
            masked = view.rendered_text

        if masked != rendered:
            record.msg, record.args = masked, None


def apply_sensitive_filter(
    logger_names: Iterable[str] = ('',),
    policy: Optional[MaskingPolicy] = None
) -> SensitiveDataFilter:
    """
    Attach one masking filter to the named loggers.

    Logger filters only see records created on that logger; to mask
    records propagated from child loggers, add the filter to handlers.

    Args:
        logger_names: Logger names ('' is the root logger)
        policy: Masking policy shared by the filter

    Returns:
        The attached filter
    """
    sensitive_filter = SensitiveDataFilter(policy)
    for name in logger_names:
        logging.getLogger(name).addFilter(sensitive_filter)
    return sensitive_filter
