import logging


class DatabaseLogHandler(logging.Handler):
    """Persist log records as ``SystemLog`` rows"""

    def emit(self, record):
        try:
            from django.db import transaction
            from agency.system.models import SystemLog

            message = record.getMessage()
            if record.exc_info:
                message = f"{message}\n{logging.Formatter().formatException(record.exc_info)}"
            # Savepoint so a failed insert cannot break the caller's transaction
            with transaction.atomic():
                SystemLog.objects.create(
                    level=record.levelname,
                    logger=record.name[:200],
                    message=message,
                    module=(record.module or '')[:200],
                )
        except Exception:
            self.handleError(record)
