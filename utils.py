DEBUG_MODE = False  # Quiet by default; enable via set_debug(True) or --debug


def set_debug(value):
    """
    Turn emulator debug output on or off

    Args:
        value (bool): True to enable debug output, False to disable
    """
    global DEBUG_MODE
    DEBUG_MODE = bool(value)


def debug_print(text):
    """
    Prints a debug line (prefixed by the component, e.g. "CPU: ...").

    Args:
        text (str): The text to print.
    """
    if DEBUG_MODE:
        print(text)
