import inspect
import functools
from typing import Optional


class StyledPrinter:
    """
    Chainable ANSI printer for colors, background highlights, and styles.

    Example usage:
        printer = StyledPrinter()
        printer["blue"]("Blue text")
        printer["italic"]["red"]("Italic red text")
        printer["blue"]["bg_red"]["bold"]["underline"]("Styled text")
    """
    styles = {
        "bold": "1",
        "underline": "4",
        "reverse": "7",
        "italic": "3",
    }

    fg_colors = {
        "warm_yellow": "220", "yellow": "226", "orange": "208",
        "red": "196", "light_red": "203", "green": "82", "light_green": "120",
        "cyan": "51", "light_cyan": "159", "blue": "33", "light_blue": "75",
        "purple": "129", "magenta": "201", "pink": "205", "gray": "245",
        "dark_gray": "240", "light_gray": "250", "white": "15", "black": "16",
        "gold": "220", "teal": "37", "warm_blue": "117",
    }

    bg_colors = dict(("bg_" + color_name, code) for color_name, code in fg_colors.items())

    def __init__(self, codes=None):
        self.codes = codes or []

    def __getitem__(self, key):
        if key in self.styles:
            code = self.styles[key]
        elif key in self.fg_colors:
            code = f"38;5;{self.fg_colors[key]}"
        elif key in self.bg_colors:
            code = f"48;5;{self.bg_colors[key]}"
        else:
            raise KeyError(f"Style or color '{key}' not defined.")

        # Return a new instance with combined codes
        return StyledPrinter(self.codes + [code])

    def __call__(self, text):
        if not self.codes:
            print(text)
        else:
            print(f"\033[{';'.join(self.codes)}m{text}\033[0m")


# Create the printer instance
printers = StyledPrinter()


def log_wrapper(func, log_colour: Optional[str] = "warm_yellow", printer=None):
    """
    Trace calls of ``func`` with the given printer. Coroutine functions stay
    coroutine functions. Pass ``log=False`` on a call to silence it.
    """
    printer = printer or printers[log_colour]

    def report(args, kwargs, result):
        printer(
            f"[LOG] Using {func.__name__} "
            f"with args: {args}, kwargs: {kwargs}\n---> result: {result}"
        )

    if inspect.iscoroutinefunction(func):
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            log = kwargs.pop("log", True)
            result = await func(*args, **kwargs)
            if log:
                report(args, kwargs, result)
            return result
        return async_wrapper

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        log = kwargs.pop("log", True)  # extract `log` if passed
        result = func(*args, **kwargs)
        if log:
            report(args, kwargs, result)
        return result
    return wrapper


def logged(log_colour: Optional[str] = "warm_yellow"):
    """Decorator form of :func:`log_wrapper`."""
    def decorator(func):
        return log_wrapper(func, log_colour)
    return decorator
