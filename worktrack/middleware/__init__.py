"""Request middleware: logging setup, JWT identity, request timing."""
