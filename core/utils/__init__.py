from .log_tools import StyledPrinter, printers, log_wrapper, logged
