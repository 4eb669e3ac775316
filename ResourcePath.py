import os
import sys

PERSISTENT_DIRS = ("attendance_data", "images")


def get_executable_dir() -> str:
    """Get the directory where the executable is located (for persistent data)"""
    if getattr(sys, 'frozen', False):
        return os.path.dirname(sys.executable)
    return os.path.abspath(".")


def resource_path(relative_path: str) -> str:
    """ Get absolute path to resource, works for dev and for PyInstaller """
    if os.path.isabs(relative_path):
        return relative_path

    # Roster, attendance log and enrollment photos live next to the executable
    path_lower = relative_path.replace("\\", "/").lower()
    if any(name in path_lower for name in PERSISTENT_DIRS):
        base_path = get_executable_dir()
    else:
        base_path = getattr(sys, "_MEIPASS", os.path.abspath("."))
    return os.path.join(base_path, relative_path)
