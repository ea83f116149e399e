"""
distrobuilder: build orchestration for a cross-compiled musl/clang Linux distribution.
"""
