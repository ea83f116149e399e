"""
CLI command implementations.

Each module exposes ``run(args, registry)`` returning an exit code.
"""
