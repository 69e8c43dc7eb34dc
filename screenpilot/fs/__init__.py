from .sandbox import FileSandbox, is_valid_filename

__all__ = ["FileSandbox", "is_valid_filename"]
